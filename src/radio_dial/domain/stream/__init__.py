"""Stream domain - now-playing resolution and fallback playback.

This domain handles:
- Deriving metadata endpoints and playable variants from a stream URL
- Probing Icecast/SHOUTcast endpoints for the current title
- Playing a stream through an audio engine with URL fallback
- Periodic now-playing refresh
"""

from .candidates import (
    EndpointKind,
    InvalidStreamError,
    MetadataCandidate,
    StreamParts,
    metadata_candidates,
    parse_stream_reference,
    playback_candidates,
)
from .engine import AudioEngine, EngineError, MpvEngine, check_mpv_available
from .events import Aborted, Ended, EngineEvent, LoadFailed, PlaybackError, Started
from .nowplaying import (
    parse_current_song,
    parse_icecast_status_html,
    parse_icecast_status_json,
    resolve_now_playing,
)
from .player import FallbackPlayer, PlaybackState, clamp_volume
from .polling import (
    NowPlayingClient,
    NowPlayingUnavailable,
    PollHandle,
    display_text,
    start_polling,
)

__all__ = [
    # Candidates
    "EndpointKind",
    "InvalidStreamError",
    "MetadataCandidate",
    "StreamParts",
    "metadata_candidates",
    "parse_stream_reference",
    "playback_candidates",
    # Engine
    "AudioEngine",
    "EngineError",
    "MpvEngine",
    "check_mpv_available",
    # Events
    "Aborted",
    "Ended",
    "EngineEvent",
    "LoadFailed",
    "PlaybackError",
    "Started",
    # Resolver
    "parse_current_song",
    "parse_icecast_status_html",
    "parse_icecast_status_json",
    "resolve_now_playing",
    # Player
    "FallbackPlayer",
    "PlaybackState",
    "clamp_volume",
    # Polling
    "NowPlayingClient",
    "NowPlayingUnavailable",
    "PollHandle",
    "display_text",
    "start_polling",
]
