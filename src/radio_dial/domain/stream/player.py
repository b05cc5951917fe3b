"""
Stream player with candidate URL fallback.

The player owns an audio engine and a cursor into the playable variants of
the current station's stream URL. When the engine reports that a variant
could not be loaded, the next one is tried; every variant is tried at most
once per station assignment. Aborted loads are never treated as failures.
"""

import threading
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .candidates import playback_candidates
from .engine import AudioEngine, EngineError
from .events import Aborted, Ended, EngineEvent, LoadFailed, PlaybackError, Started

FailureCallback = Callable[[str, str], None]  # (stream, reason)
ChangeCallback = Callable[["PlaybackState"], None]


class PlaybackState(str, Enum):
    """Player lifecycle states."""

    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    EXHAUSTED = "exhausted"


def clamp_volume(volume: float) -> float:
    """Clamp a volume to [0.0, 1.0]."""
    return max(0.0, min(1.0, float(volume)))


class FallbackPlayer:
    """Plays a station, falling back through URL variants on load errors.

    Commands (set_station, toggle_play, set_volume, dispose) may come from the
    UI thread while engine events arrive on the engine's thread; both are
    serialised by a re-entrant lock. Callbacks run after the lock is released.
    """

    def __init__(
        self,
        engine: AudioEngine,
        volume: float = 1.0,
        on_failure: Optional[FailureCallback] = None,
        on_change: Optional[ChangeCallback] = None,
    ):
        self._engine = engine
        self._on_failure = on_failure
        self._on_change = on_change
        self._lock = threading.RLock()

        self._state = PlaybackState.IDLE
        self._stream: Optional[str] = None
        self._candidates: tuple[str, ...] = ()
        self._cursor = 0
        self._attempt = 0
        self._started = False  # Current candidate has been opened by the engine
        self._needs_reload = False  # Current candidate was dropped from the engine
        self._disposed = False
        self._state_changed = False
        self._volume = clamp_volume(volume)

        engine.set_event_handler(self.handle_event)
        try:
            engine.set_volume(self._volume)
        except EngineError as e:
            logger.warning(f"Could not set initial volume: {e}")

    # === Read-only view ===

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        """True while the player is trying to produce, or producing, audio."""
        return self._state in (PlaybackState.LOADING, PlaybackState.PLAYING)

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def stream(self) -> Optional[str]:
        return self._stream

    @property
    def candidates(self) -> tuple[str, ...]:
        return self._candidates

    @property
    def current_url(self) -> Optional[str]:
        if not self._candidates or self._state is PlaybackState.EXHAUSTED:
            return None
        return self._candidates[self._cursor]

    # === Commands ===

    def set_station(self, stream: Optional[str], autoplay: Optional[bool] = None) -> None:
        """Switch to a new stream (or clear it with None).

        Args:
            stream: Stream URL, or None/'' to unload
            autoplay: Start playing right away. None keeps the previous intent:
                play unless the player was paused.
        """
        failure = None
        with self._lock:
            if self._disposed:
                return
            previous = self._state
            self._supersede()

            if not stream:
                self._stream = None
                self._candidates = ()
                self._cursor = 0
                self._set_state(PlaybackState.IDLE)
                logger.debug("Station cleared")
            else:
                self._stream = stream
                self._candidates = tuple(playback_candidates(stream))
                self._cursor = 0
                if autoplay is None:
                    autoplay = previous is not PlaybackState.PAUSED
                logger.info(
                    f"Station set: {stream} ({len(self._candidates)} candidates)"
                )
                failure = self._load_current(play=autoplay)
        self._emit(failure)

    def toggle_play(self) -> None:
        """Flip between playing and paused. No-op without a station."""
        failure = None
        with self._lock:
            if self._disposed or not self._candidates:
                return

            try:
                match self._state:
                    case PlaybackState.PLAYING:
                        self._engine.pause()
                        self._set_state(PlaybackState.PAUSED)
                    case PlaybackState.LOADING:
                        # Cancel the in-flight load, resume reloads this candidate
                        self._supersede()
                        self._needs_reload = True
                        self._set_state(PlaybackState.PAUSED)
                    case PlaybackState.EXHAUSTED:
                        logger.info(f"Retrying exhausted station: {self._stream}")
                        self._cursor = 0
                        failure = self._load_current(play=True)
                    case PlaybackState.PAUSED | PlaybackState.IDLE:
                        if self._needs_reload:
                            failure = self._load_current(play=True)
                        else:
                            self._engine.play()
                            self._set_state(
                                PlaybackState.PLAYING
                                if self._started
                                else PlaybackState.LOADING
                            )
            except EngineError as e:
                failure = self._fail(f"engine error: {e}")
        self._emit(failure)

    def set_volume(self, volume: float) -> None:
        """Clamp and apply a volume in [0.0, 1.0] regardless of play state."""
        with self._lock:
            if self._disposed:
                return
            self._volume = clamp_volume(volume)
            try:
                self._engine.set_volume(self._volume)
            except EngineError as e:
                logger.warning(f"Could not set volume: {e}")

    def dispose(self) -> None:
        """Stop and release the engine. Safe to call repeatedly."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            self._attempt += 1
            try:
                self._engine.stop()
            except EngineError as e:
                logger.debug(f"Engine stop during dispose failed: {e}")
            try:
                self._engine.close()
            except EngineError as e:
                logger.warning(f"Engine close failed: {e}")
            self._candidates = ()
            self._stream = None
            self._state = PlaybackState.IDLE
        logger.debug("Player disposed")

    # === Engine events ===

    def handle_event(self, event: EngineEvent) -> None:
        """React to an engine event for the current load attempt."""
        failure = None
        with self._lock:
            if self._disposed or event.attempt != self._attempt:
                logger.debug(f"Ignoring stale engine event: {event}")
                return

            match event:
                case Aborted():
                    logger.debug(f"Load aborted: attempt {event.attempt}")
                case Started():
                    self._started = True
                    if self._state is PlaybackState.LOADING:
                        logger.info(f"Playing {self.current_url}")
                        self._set_state(PlaybackState.PLAYING)
                case LoadFailed(reason=reason):
                    if self._state in (PlaybackState.LOADING, PlaybackState.PAUSED):
                        failure = self._advance(reason)
                case PlaybackError(reason=reason):
                    failure = self._fail(reason or "playback error")
                case Ended():
                    logger.info(f"Stream ended: {self.current_url}")
                    self._needs_reload = True
                    self._set_state(PlaybackState.PAUSED)
        self._emit(failure)

    # === Internals (lock held) ===

    def _supersede(self) -> None:
        """Invalidate the current attempt and stop the engine."""
        self._attempt += 1
        self._started = False
        try:
            self._engine.stop()
        except EngineError as e:
            logger.debug(f"Engine stop failed: {e}")

    def _load_current(self, play: bool) -> Optional[tuple[str, str]]:
        """Load the candidate under the cursor as a fresh attempt."""
        self._attempt += 1
        self._started = False
        self._needs_reload = False
        url = self._candidates[self._cursor]
        logger.debug(
            f"Loading candidate {self._cursor + 1}/{len(self._candidates)}: {url}"
        )
        try:
            self._engine.load(url, self._attempt)
            if play:
                self._engine.play()
        except EngineError as e:
            return self._fail(f"engine error: {e}")
        self._set_state(PlaybackState.LOADING if play else PlaybackState.PAUSED)
        return None

    def _advance(self, reason: str) -> Optional[tuple[str, str]]:
        """Move to the next candidate after a load error."""
        failed_url = self._candidates[self._cursor]
        logger.info(f"Candidate failed to load: {failed_url} ({reason or 'no reason'})")

        if self._cursor + 1 >= len(self._candidates):
            logger.warning(
                f"All {len(self._candidates)} candidates failed for {self._stream}"
            )
            self._supersede()
            self._set_state(PlaybackState.EXHAUSTED)
            return (self._stream or "", reason or "all candidates failed")

        self._cursor += 1
        return self._load_current(play=self._state is PlaybackState.LOADING)

    def _fail(self, reason: str) -> tuple[str, str]:
        """Stop cycling and fall back to paused after an unrecoverable error."""
        logger.error(f"Playback failed for {self._stream}: {reason}")
        self._supersede()
        self._needs_reload = True
        self._set_state(PlaybackState.PAUSED)
        return (self._stream or "", reason)

    def _set_state(self, state: PlaybackState) -> None:
        if state is not self._state:
            self._state = state
            self._state_changed = True

    # === Callbacks (lock released) ===

    def _emit(self, failure: Optional[tuple[str, str]]) -> None:
        with self._lock:
            changed, self._state_changed = self._state_changed, False
            state = self._state
        if changed and self._on_change:
            self._on_change(state)
        if failure is not None and self._on_failure:
            self._on_failure(*failure)
