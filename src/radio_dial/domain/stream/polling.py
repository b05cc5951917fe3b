"""
Periodic now-playing refresh.

A PollHandle owns one background ticker. Callers must stop() it when the
displayed station changes; after stop() returns no further fetches or
callbacks happen.
"""

import threading
from typing import Callable, Optional

import requests
from loguru import logger

DEFAULT_POLL_INTERVAL = 15.0

# Display fallbacks when there is no title
SEARCHING_TEXT = "searching..."
LIVE_TEXT = "live"


class NowPlayingUnavailable(Exception):
    """Raised when the now-playing API cannot be reached or errors."""


class PollHandle:
    """Cancellable handle for a running poll loop."""

    def __init__(
        self,
        fetch: Callable[[], str],
        on_title: Callable[[str], None],
        interval: float,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._fetch = fetch
        self._on_title = on_title
        self._on_error = on_error
        self._interval = interval
        self._stop_event = threading.Event()
        self._callback_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, daemon=True)

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> "PollHandle":
        self._thread.start()
        return self

    def stop(self, timeout: float = 1.0) -> None:
        """Stop polling. Safe to call more than once or from a callback."""
        self._stop_event.set()
        # Wait out an in-flight callback so none fires after stop() returns
        if threading.current_thread() is not self._thread:
            with self._callback_lock:
                pass
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._tick()
            if self._stop_event.wait(self._interval):
                break

    def _tick(self) -> None:
        try:
            title = self._fetch()
        except Exception as e:
            with self._callback_lock:
                if self._stop_event.is_set():
                    return
                logger.debug(f"Now-playing fetch failed: {e}")
                if self._on_error:
                    self._on_error(e)
            return

        with self._callback_lock:
            if not self._stop_event.is_set():
                self._on_title(title)


def start_polling(
    fetch: Callable[[], str],
    on_title: Callable[[str], None],
    interval: float = DEFAULT_POLL_INTERVAL,
    on_error: Optional[Callable[[Exception], None]] = None,
) -> PollHandle:
    """Call fetch() now and every `interval` seconds until stopped.

    Args:
        fetch: Returns the current title (may raise)
        on_title: Receives each fetched title
        interval: Seconds between fetches
        on_error: Receives fetch exceptions; polling continues

    Returns:
        Running PollHandle
    """
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    return PollHandle(fetch, on_title, interval, on_error).start()


class NowPlayingClient:
    """HTTP client for the /api/nowplaying endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_title(self, stream: str) -> str:
        """Fetch the current title for a stream.

        Returns:
            The title ('' when the server found none)

        Raises:
            NowPlayingUnavailable: On network errors or non-2xx responses
        """
        try:
            response = self._session.get(
                f"{self.base_url}/api/nowplaying",
                params={"stream": stream},
                headers={"Cache-Control": "no-store"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NowPlayingUnavailable(str(e)) from e

        if not response.ok:
            raise NowPlayingUnavailable(f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise NowPlayingUnavailable("Invalid JSON response") from e

        if not isinstance(data, dict):
            return ""
        # Older deployments answered with "song"
        return str(data.get("title") or data.get("song") or "")


def display_text(title: str, errored: bool = False) -> str:
    """Text to show for the now-playing line."""
    if title:
        return title
    return LIVE_TEXT if errored else SEARCHING_TEXT
