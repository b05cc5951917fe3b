"""
Shared radio selection state.

RadioStore is the single container for the directory listing, the selected
station, the play intent and the volume. The UI and the playback session both
observe it through subscribe() instead of reaching for module globals.
"""

import threading
from typing import Callable, NamedTuple, Optional, Sequence

from .models import Radio

Listener = Callable[["RadioState", "RadioState"], None]  # (new, old)


class RadioState(NamedTuple):
    """Immutable snapshot of the store."""

    radios: tuple[Radio, ...] = ()
    current_radio: Optional[Radio] = None
    is_playing: bool = False
    volume: float = 1.0
    is_loading: bool = False
    selected_category: Optional[str] = None
    selected_location: Optional[str] = None
    now_playing: str = ""
    now_playing_error: bool = False


def search_radios(radios: Sequence[Radio], term: str) -> list[Radio]:
    """Case-insensitive substring search over name and location."""
    term = (term or "").strip().lower()
    if not term:
        return list(radios)
    return [
        radio
        for radio in radios
        if term in radio.name.lower() or term in (radio.location or "").lower()
    ]


class RadioStore:
    """Observable container for RadioState."""

    def __init__(self, state: Optional[RadioState] = None):
        self._state = state or RadioState()
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> RadioState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with (new, old) after each change.

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        with self._lock:
            old = self._state
            new = old._replace(**changes)
            if new == old:
                return
            self._state = new
            listeners = list(self._listeners)
        # Notify outside the lock so listeners can update the store again
        for listener in listeners:
            listener(new, old)

    # === Actions ===

    def set_radios(self, radios: Sequence[Radio]) -> None:
        self._update(radios=tuple(radios))

    def set_current_radio(self, radio: Optional[Radio]) -> None:
        changes = {"current_radio": radio}
        if radio != self._state.current_radio:
            changes.update(now_playing="", now_playing_error=False)
        self._update(**changes)

    def set_is_playing(self, playing: bool) -> None:
        self._update(is_playing=bool(playing))

    def set_volume(self, volume: float) -> None:
        self._update(volume=max(0.0, min(1.0, float(volume))))

    def set_is_loading(self, loading: bool) -> None:
        self._update(is_loading=bool(loading))

    def set_selected_category(self, category: Optional[str]) -> None:
        self._update(selected_category=category)

    def set_selected_location(self, location: Optional[str]) -> None:
        self._update(selected_location=location)

    def set_now_playing(self, title: str, errored: bool = False) -> None:
        self._update(now_playing=title, now_playing_error=errored)

    # === Computed ===

    def filtered_radios(self) -> list[Radio]:
        """Radios matching the selected category and location (if any)."""
        state = self._state
        return [
            radio
            for radio in state.radios
            if (not state.selected_category or radio.category == state.selected_category)
            and (not state.selected_location or radio.location == state.selected_location)
        ]
