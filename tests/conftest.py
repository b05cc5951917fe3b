"""Shared fixtures for domain tests."""

from typing import Callable, Optional

import pytest

from radio_dial.domain.stream.engine import EngineError
from radio_dial.domain.stream.events import EngineEvent


class FakeEngine:
    """In-memory AudioEngine that records commands and lets tests emit events."""

    def __init__(self) -> None:
        self.handler: Optional[Callable[[EngineEvent], None]] = None
        self.loads: list[tuple[str, int]] = []
        self.calls: list[str] = []
        self.volume: Optional[float] = None
        self.closed = False
        self.failing: set[str] = set()  # command names that raise EngineError

    def _record(self, name: str) -> None:
        if name in self.failing:
            raise EngineError(f"{name} failed")
        self.calls.append(name)

    def set_event_handler(self, handler: Callable[[EngineEvent], None]) -> None:
        self.handler = handler

    def load(self, url: str, attempt: int) -> None:
        self._record("load")
        self.loads.append((url, attempt))

    def play(self) -> None:
        self._record("play")

    def pause(self) -> None:
        self._record("pause")

    def stop(self) -> None:
        self._record("stop")

    def set_volume(self, volume: float) -> None:
        self._record("set_volume")
        self.volume = volume

    def close(self) -> None:
        self._record("close")
        self.closed = True

    @property
    def loaded_urls(self) -> list[str]:
        return [url for url, _ in self.loads]

    @property
    def last_attempt(self) -> int:
        return self.loads[-1][1]

    def emit(self, event: EngineEvent) -> None:
        assert self.handler is not None
        self.handler(event)


@pytest.fixture
def engine() -> FakeEngine:
    """Fresh fake audio engine."""
    return FakeEngine()
