"""
Playback session: keeps the player and now-playing poller in step with the store.

The store holds what the user asked for (station, play intent, volume); the
session turns changes into player commands and mirrors the player's actual
state back. The player and the poller never talk to each other.
"""

from typing import Callable, Optional

from loguru import logger

from radio_dial.domain.stream.engine import AudioEngine
from radio_dial.domain.stream.player import FallbackPlayer, PlaybackState
from radio_dial.domain.stream.polling import (
    DEFAULT_POLL_INTERVAL,
    PollHandle,
    start_polling,
)

from .store import RadioState, RadioStore

TitleFetcher = Callable[[str], str]
PollerFactory = Callable[..., PollHandle]


def _stream_url(state: RadioState) -> Optional[str]:
    return state.current_radio.stream_url if state.current_radio else None


class RadioSession:
    """Binds a RadioStore to a FallbackPlayer and a now-playing poller."""

    def __init__(
        self,
        store: RadioStore,
        engine: AudioEngine,
        fetch_title: TitleFetcher,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        start_poller: PollerFactory = start_polling,
    ):
        self._store = store
        self._fetch_title = fetch_title
        self._poll_interval = poll_interval
        self._start_poller = start_poller
        self._poller: Optional[PollHandle] = None
        self._closed = False

        self.player = FallbackPlayer(
            engine,
            volume=store.state.volume,
            on_failure=self._on_player_failure,
            on_change=self._on_player_change,
        )
        self._unsubscribe = store.subscribe(self._on_store_change)

        state = store.state
        if _stream_url(state):
            self._switch_station(_stream_url(state), state.is_playing)

    def close(self) -> None:
        """Stop polling, detach from the store and release the player."""
        if self._closed:
            return
        self._closed = True
        self._stop_poller()
        self._unsubscribe()
        self.player.dispose()

    # === Store -> player ===

    def _on_store_change(self, new: RadioState, old: RadioState) -> None:
        if self._closed:
            return

        new_url, old_url = _stream_url(new), _stream_url(old)
        if new_url != old_url:
            self._switch_station(new_url, new.is_playing)
        elif new.is_playing != old.is_playing and new.is_playing != self.player.is_playing:
            self.player.toggle_play()

        if new.volume != old.volume:
            self.player.set_volume(new.volume)

    def _switch_station(self, stream: Optional[str], play: bool) -> None:
        self._stop_poller()
        self.player.set_station(stream, autoplay=play)
        if stream:
            self._poller = self._start_poller(
                lambda: self._fetch_title(stream),
                self._on_title,
                interval=self._poll_interval,
                on_error=self._on_title_error,
            )

    def _stop_poller(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    # === Poller -> store ===

    def _on_title(self, title: str) -> None:
        self._store.set_now_playing(title)

    def _on_title_error(self, error: Exception) -> None:
        self._store.set_now_playing("", errored=True)

    # === Player -> store ===

    def _on_player_change(self, state: PlaybackState) -> None:
        self._store.set_is_playing(self.player.is_playing)

    def _on_player_failure(self, stream: str, reason: str) -> None:
        logger.warning(f"Playback failed for {stream}: {reason}")
        self._store.set_is_playing(False)
