"""Now-playing title resolution for Icecast/SHOUTcast streams.

Probes the conventional metadata endpoints of a streaming server one at a
time, with a short timeout each, and returns the first title found. Endpoints
that answer with the audio stream itself are skipped without reading the body.
"""

import html
import json
import re
import time
from typing import Any, Optional

import requests
from loguru import logger

from radio_dial.core.config import ResolverConfig

from .candidates import (
    EndpointKind,
    InvalidStreamError,
    MetadataCandidate,
    metadata_candidates,
    parse_stream_reference,
)

# Content types that mean the server handed us the stream instead of metadata
MEDIA_CONTENT_TYPES = ("audio/", "video/", "application/ogg")

_CHUNK_SIZE = 4096

_CURRENT_SONG_RE = re.compile(r"Current Song:\s*<[^>]*>([^<]+)</[^>]*>", re.IGNORECASE)
_STREAM_TITLE_RE = re.compile(r"Stream Title:\s*([^\n<]+)", re.IGNORECASE)
_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)


def is_media_content_type(content_type: str) -> bool:
    """Check whether a Content-Type header denotes an audio/video payload."""
    content_type = (content_type or "").lower()
    return any(marker in content_type for marker in MEDIA_CONTENT_TYPES)


def _text(value: Any) -> str:
    """Coerce a JSON value to a stripped string ('' for null/containers)."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def parse_icecast_status_json(text: str, mount: str) -> str:
    """Extract a title from an Icecast status-json.xsl document.

    ``icestats.source`` is an object on single-mount servers and an array on
    multi-mount servers. For arrays the entry whose ``listenurl`` contains the
    mount wins, then the first entry with a ``server_name``, then the first
    entry with a ``title``.

    Args:
        text: Response body
        mount: Mount path of the requested stream (may be empty)

    Returns:
        The entry's title (or server name), or '' if nothing usable
    """
    try:
        data = json.loads(text)
    except ValueError:
        return ""

    icestats = data.get("icestats") if isinstance(data, dict) else None
    if not isinstance(icestats, dict):
        return ""

    source = icestats.get("source")
    if isinstance(source, dict):
        match = source
    elif isinstance(source, list):
        entries = [entry for entry in source if isinstance(entry, dict)]
        match = None
        if mount:
            match = next(
                (e for e in entries if mount in _text(e.get("listenurl"))), None
            )
        if match is None:
            match = next((e for e in entries if _text(e.get("server_name"))), None)
        if match is None:
            match = next((e for e in entries if _text(e.get("title"))), None)
    else:
        match = None

    if not match:
        return ""
    return _text(match.get("title")) or _text(match.get("server_name"))


def parse_icecast_status_html(text: str) -> str:
    """Extract a title from an Icecast status.xsl HTML page."""
    m = _CURRENT_SONG_RE.search(text) or _STREAM_TITLE_RE.search(text)
    if not m:
        return ""
    return html.unescape(m.group(1)).strip()


def parse_current_song(text: str) -> str:
    """SHOUTcast currentsong is the title as plain text."""
    return text.strip()


def parse_metadata(candidate: MetadataCandidate, text: str, mount: str) -> str:
    """Parse a metadata body according to the endpoint that produced it."""
    match candidate.kind:
        case EndpointKind.JSON_STATUS:
            return parse_icecast_status_json(text, mount)
        case EndpointKind.HTML_STATUS:
            return parse_icecast_status_html(text)
        case EndpointKind.CURRENT_SONG:
            return parse_current_song(text)
    return ""


def header_charset(content_type: str) -> Optional[str]:
    """Charset named in a Content-Type header, if any."""
    m = _CHARSET_RE.search(content_type or "")
    return m.group(1) if m else None


def _read_body(response: requests.Response, max_bytes: int, deadline: float) -> str:
    """Read at most max_bytes of the body, stopping at the deadline.

    Decodes with the charset named in Content-Type, else UTF-8 (never
    requests' ISO-8859-1 default for bare text/*).
    """
    body = bytearray()
    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
        if chunk:
            body += chunk
        if len(body) >= max_bytes:
            logger.debug(f"Metadata body cut at {max_bytes} bytes")
            break
        if time.monotonic() >= deadline:
            break

    encoding = header_charset(response.headers.get("Content-Type", "")) or "utf-8"
    try:
        return bytes(body[:max_bytes]).decode(encoding, errors="replace")
    except LookupError:
        return bytes(body[:max_bytes]).decode("utf-8", errors="replace")


def probe_endpoint(
    session: requests.Session,
    candidate: MetadataCandidate,
    config: ResolverConfig,
) -> Optional[str]:
    """Fetch one metadata endpoint.

    Args:
        session: HTTP session to use
        candidate: Endpoint to probe
        config: Resolver settings (timeout, body cap)

    Returns:
        Response body as text, or None if the endpoint failed, returned a
        non-2xx status or served audio/video
    """
    deadline = time.monotonic() + config.probe_timeout
    try:
        response = session.get(
            candidate.url,
            timeout=config.probe_timeout,
            stream=True,
            headers={"User-Agent": config.user_agent},
        )
    except requests.RequestException as e:
        logger.debug(f"Probe failed for {candidate.url}: {e}")
        return None

    try:
        if not 200 <= response.status_code < 300:
            logger.debug(f"Probe {candidate.url} returned HTTP {response.status_code}")
            return None

        content_type = response.headers.get("Content-Type", "")
        if is_media_content_type(content_type):
            logger.debug(f"Skipping {candidate.url}: served {content_type}")
            return None

        return _read_body(response, config.max_body_bytes, deadline)
    except requests.RequestException as e:
        logger.debug(f"Reading {candidate.url} failed: {e}")
        return None
    finally:
        response.close()


def resolve_now_playing(
    stream: Any,
    session: Optional[requests.Session] = None,
    config: Optional[ResolverConfig] = None,
) -> str:
    """Resolve the current "now playing" title of a stream.

    Candidates are probed sequentially and the first non-empty title stops
    the search. Per-candidate failures never escape this function.

    Args:
        stream: Stream URL as submitted by the user
        session: Optional requests session (a fresh one is used otherwise)
        config: Resolver settings (defaults: 2s timeout per probe)

    Returns:
        The title, or '' when no endpoint yielded one

    Raises:
        InvalidStreamError: If stream is missing, not a string or not an
            absolute http(s) URL
    """
    if not isinstance(stream, str) or not stream.strip():
        raise InvalidStreamError("Missing stream")

    parts = parse_stream_reference(stream)
    if parts is None:
        raise InvalidStreamError(f"Invalid stream URL: {stream!r}")

    config = config or ResolverConfig()
    candidates = metadata_candidates(stream, include_mount_status=config.probe_mount_status)

    owns_session = session is None
    session = session or requests.Session()
    try:
        for candidate in candidates:
            text = probe_endpoint(session, candidate, config)
            if text is None:
                continue
            title = parse_metadata(candidate, text, parts.mount)
            if title:
                logger.debug(f"Resolved title for {stream} via {candidate.url}: {title}")
                return title
    finally:
        if owns_session:
            session.close()

    logger.debug(f"No title found for {stream} ({len(candidates)} endpoints probed)")
    return ""
