"""
Candidate URL derivation for stream references.

Both the now-playing resolver and the fallback player start from a
user-submitted stream URL and expand it into an ordered, deduplicated list of
URLs to try. The lists are rebuilt on every call and never cached.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, TypeVar
from urllib.parse import urlsplit, urlunsplit

# SHOUTcast convention: a trailing ';' on the path asks for the raw stream
SHOUTCAST_MARKER = ";"

# Icecast/SHOUTcast mount suffixes tried when the path is not already a stream
PLAYBACK_SUFFIXES = ("/stream", "/;stream/1", "/live")

_ALLOWED_SCHEMES = ("http", "https")


class InvalidStreamError(ValueError):
    """Raised when a stream reference is missing or is not an absolute URL."""


class EndpointKind(str, Enum):
    """Which metadata format a candidate endpoint is expected to return."""

    JSON_STATUS = "json_status"  # Icecast status-json.xsl
    HTML_STATUS = "html_status"  # Icecast status.xsl
    CURRENT_SONG = "current_song"  # SHOUTcast currentsong (plain text)


@dataclass(frozen=True)
class MetadataCandidate:
    """A metadata endpoint to probe, tagged with how to parse its body."""

    url: str
    kind: EndpointKind


@dataclass(frozen=True)
class StreamParts:
    """Parsed pieces of an absolute stream URL."""

    scheme: str
    netloc: str
    origin: str  # scheme://host[:port], credentials dropped
    path: str
    query: str
    fragment: str

    @property
    def has_marker(self) -> bool:
        """True if the path carries the SHOUTcast trailing ';'."""
        return self.path.endswith(SHOUTCAST_MARKER)

    @property
    def mount(self) -> str:
        """Mount point used for metadata lookups: no trailing ';' or '/'."""
        path = self.path
        if path.endswith(SHOUTCAST_MARKER):
            path = path[: -len(SHOUTCAST_MARKER)]
        return path.rstrip("/")

    def with_path(self, path: str) -> str:
        """Rebuild the full URL with a different path."""
        return urlunsplit((self.scheme, self.netloc, path, self.query, self.fragment))


def parse_stream_reference(stream: object) -> Optional[StreamParts]:
    """Parse a stream reference into its URL parts.

    Args:
        stream: Candidate stream URL (anything; non-strings are rejected)

    Returns:
        StreamParts, or None if it is not an absolute http(s) URL with a host
    """
    if not isinstance(stream, str) or not stream.strip():
        return None

    try:
        parts = urlsplit(stream.strip())
        # Accessing .port validates it (raises ValueError on garbage)
        parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES or not parts.hostname:
        return None

    host = parts.netloc.rpartition("@")[2]
    return StreamParts(
        scheme=parts.scheme,
        netloc=parts.netloc,
        origin=f"{scheme}://{host}",
        path=parts.path,
        query=parts.query,
        fragment=parts.fragment,
    )


T = TypeVar("T")


def _dedupe(items: Iterable[T], key: Callable[[T], str] = str) -> list[T]:
    """Remove items whose key was already seen, keeping first occurrence order."""
    seen: set[str] = set()
    result = []
    for item in items:
        k = key(item)
        if k not in seen:
            seen.add(k)
            result.append(item)
    return result


def _join_path(base: str, suffix: str) -> str:
    """Join a suffix onto a path without doubling the slash."""
    if base.endswith("/"):
        return base + suffix.lstrip("/")
    return base + suffix


def metadata_candidates(
    stream: str, include_mount_status: bool = False
) -> list[MetadataCandidate]:
    """Build the ordered list of metadata endpoints for a stream.

    Priority: Icecast JSON status, Icecast HTML status, SHOUTcast per-mount
    currentsong, SHOUTcast global currentsong. With include_mount_status the
    mount-qualified status pages are inserted right after their origin-level
    counterparts.

    Args:
        stream: Stream URL as submitted by the user
        include_mount_status: Also probe {mount}/status-json.xsl and {mount}/status.xsl

    Returns:
        Deduplicated candidates, most trusted first

    Raises:
        InvalidStreamError: If the stream is not an absolute http(s) URL
    """
    parts = parse_stream_reference(stream)
    if parts is None:
        raise InvalidStreamError(f"Invalid stream URL: {stream!r}")

    origin, mount = parts.origin, parts.mount
    entries = [MetadataCandidate(f"{origin}/status-json.xsl", EndpointKind.JSON_STATUS)]
    if include_mount_status and mount:
        entries.append(
            MetadataCandidate(f"{origin}{mount}/status-json.xsl", EndpointKind.JSON_STATUS)
        )
    entries.append(MetadataCandidate(f"{origin}/status.xsl", EndpointKind.HTML_STATUS))
    if include_mount_status and mount:
        entries.append(
            MetadataCandidate(f"{origin}{mount}/status.xsl", EndpointKind.HTML_STATUS)
        )
    entries.append(
        MetadataCandidate(f"{origin}{mount}/currentsong", EndpointKind.CURRENT_SONG)
    )
    entries.append(MetadataCandidate(f"{origin}/currentsong", EndpointKind.CURRENT_SONG))

    return _dedupe(entries, key=lambda entry: entry.url)


def playback_candidates(stream: str) -> list[str]:
    """Build the ordered list of playable URL variants for a stream.

    1. The URL as given, minus surrounding whitespace.
    2. The trailing ';' stripped if present, otherwise appended.
    3. Unless the path already looks like a stream endpoint (contains
       "stream" or carries the ';' marker): {path}/stream, {path}/;stream/1,
       {path}/live.

    Unparseable input yields just the original string.

    Args:
        stream: Stream URL as submitted by the user

    Returns:
        Deduplicated playable URLs, most likely first
    """
    parts = parse_stream_reference(stream)
    if parts is None:
        return [stream]

    stream = stream.strip()
    candidates = [stream]
    if parts.has_marker:
        candidates.append(parts.with_path(parts.path[: -len(SHOUTCAST_MARKER)]))
    else:
        candidates.append(parts.with_path((parts.path or "/") + SHOUTCAST_MARKER))

    if "stream" not in parts.path and not parts.has_marker:
        for suffix in PLAYBACK_SUFFIXES:
            candidates.append(parts.with_path(_join_path(parts.path, suffix)))

    return _dedupe(candidates)
