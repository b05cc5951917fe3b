"""
Audio engine events.

Every event carries the load attempt number it belongs to, so the player can
drop events from loads it has already superseded.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Started:
    """The source was opened and audio can flow."""

    attempt: int


@dataclass(frozen=True)
class LoadFailed:
    """The source could not be opened or decoded at all."""

    attempt: int
    reason: str = ""


@dataclass(frozen=True)
class Aborted:
    """The engine cancelled an in-flight load (stop or newer load)."""

    attempt: int


@dataclass(frozen=True)
class Ended:
    """The stream ran out (server closed a live stream)."""

    attempt: int


@dataclass(frozen=True)
class PlaybackError:
    """Runtime failure after the source was opened."""

    attempt: int
    reason: str = ""


EngineEvent = Union[Started, LoadFailed, Aborted, Ended, PlaybackError]
