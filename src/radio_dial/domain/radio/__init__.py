"""
Radio domain module.

Provides the station model, the shared selection store and the playback
session that binds them to the stream player.
"""

from .models import Radio
from .session import RadioSession
from .store import RadioState, RadioStore, search_radios

__all__ = [
    "Radio",
    "RadioSession",
    "RadioState",
    "RadioStore",
    "search_radios",
]
