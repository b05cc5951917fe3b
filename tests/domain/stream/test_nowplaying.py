"""Tests for the now-playing metadata resolver."""

import json
from typing import Optional, Union

import pytest
import requests

from radio_dial.core.config import ResolverConfig
from radio_dial.domain.stream.candidates import InvalidStreamError
from radio_dial.domain.stream.nowplaying import (
    header_charset,
    is_media_content_type,
    parse_icecast_status_html,
    parse_icecast_status_json,
    resolve_now_playing,
)

ORIGIN = "https://ice.example.com:8000"
STREAM = f"{ORIGIN}/live;"


class FakeResponse:
    """Minimal stand-in for requests.Response with streaming bodies.

    encoding mirrors requests, which guesses ISO-8859-1 for text/* without a
    charset.
    """

    def __init__(
        self,
        status_code: int = 200,
        body: Union[str, bytes] = b"",
        content_type: str = "text/plain",
        encoding: Optional[str] = "ISO-8859-1",
    ) -> None:
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.encoding = encoding
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self.body_read = False
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        self.body_read = True
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Routes GETs to canned responses; unknown URLs answer 404."""

    def __init__(self, routes: dict[str, Union[FakeResponse, Exception]]) -> None:
        self.routes = routes
        self.requested: list[str] = []
        self.kwargs: list[dict] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.requested.append(url)
        self.kwargs.append(kwargs)
        route = self.routes.get(url, FakeResponse(status_code=404))
        if isinstance(route, Exception):
            raise route
        return route


def icestats(source) -> str:
    return json.dumps({"icestats": {"source": source}})


class TestParseIcecastStatusJson:
    """Tests for parse_icecast_status_json."""

    def test_single_source(self) -> None:
        """A single source object yields its title."""
        text = icestats({"title": "Artist - Track", "server_name": "Radio"})

        assert parse_icecast_status_json(text, "/live") == "Artist - Track"

    def test_single_source_falls_back_to_server_name(self) -> None:
        """Without a title the server name is used."""
        text = icestats({"server_name": "Radio Uno"})

        assert parse_icecast_status_json(text, "/live") == "Radio Uno"

    def test_array_prefers_matching_mount(self) -> None:
        """The entry whose listenurl contains the mount wins over earlier ones."""
        text = icestats(
            [
                {
                    "listenurl": "http://ice.example.com:8000/other",
                    "server_name": "Other",
                    "title": "Wrong Song",
                },
                {
                    "listenurl": "http://ice.example.com:8000/live",
                    "server_name": "Live",
                    "title": "Right Song",
                },
            ]
        )

        assert parse_icecast_status_json(text, "/live") == "Right Song"

    def test_array_without_mount_match_uses_first_server_name(self) -> None:
        """With no mount match, the first entry with a server_name is used."""
        text = icestats(
            [
                {"listenurl": "http://x/a", "title": "No Name"},
                {"listenurl": "http://x/b", "server_name": "B", "title": "Song B"},
                {"listenurl": "http://x/c", "server_name": "C", "title": "Song C"},
            ]
        )

        assert parse_icecast_status_json(text, "/zzz") == "Song B"

    def test_array_falls_back_to_first_titled_entry(self) -> None:
        """Entries without server_name still yield a title."""
        text = icestats([{"listenurl": "http://x/a"}, {"title": "Only Title"}])

        assert parse_icecast_status_json(text, "") == "Only Title"

    @pytest.mark.parametrize(
        "text",
        ["not json", "[]", json.dumps({"icestats": None}), icestats(None), icestats([])],
    )
    def test_unusable_documents_yield_empty(self, text: str) -> None:
        """Malformed or empty documents give ''."""
        assert parse_icecast_status_json(text, "/live") == ""


class TestParseIcecastStatusHtml:
    """Tests for parse_icecast_status_html."""

    def test_current_song(self) -> None:
        """'Current Song: <tag>TITLE</tag>' is extracted."""
        html = "<p>Current Song: <span class='streamdata'>Artist - Track</span></p>"

        assert parse_icecast_status_html(html) == "Artist - Track"

    def test_stream_title_case_insensitive(self) -> None:
        """'Stream Title:' is matched case-insensitively and trimmed."""
        assert parse_icecast_status_html("stream title:  My Radio  \n") == "My Radio"

    def test_entities_are_unescaped(self) -> None:
        """HTML entities in the title are decoded."""
        text = "Current Song: <b>Simon &amp; Garfunkel</b>"

        assert parse_icecast_status_html(text) == "Simon & Garfunkel"

    def test_no_match(self) -> None:
        """Pages without the known labels give ''."""
        assert parse_icecast_status_html("<html><body>Hello</body></html>") == ""


class TestIsMediaContentType:
    """Tests for is_media_content_type."""

    @pytest.mark.parametrize(
        "content_type", ["audio/mpeg", "audio/aacp", "video/mp2t", "application/ogg", "AUDIO/MPEG"]
    )
    def test_media_types(self, content_type: str) -> None:
        assert is_media_content_type(content_type)

    @pytest.mark.parametrize(
        "content_type", ["", "text/html", "application/json", "text/plain; charset=utf-8"]
    )
    def test_metadata_types(self, content_type: str) -> None:
        assert not is_media_content_type(content_type)


class TestHeaderCharset:
    """Tests for header_charset."""

    @pytest.mark.parametrize(
        "content_type, expected",
        [
            ("text/plain; charset=utf-8", "utf-8"),
            ('text/html; Charset="ISO-8859-1"', "ISO-8859-1"),
            ("application/json;charset=windows-1252", "windows-1252"),
            ("text/plain", None),
            ("", None),
        ],
    )
    def test_charset(self, content_type: str, expected: Optional[str]) -> None:
        assert header_charset(content_type) == expected


class TestResolveNowPlaying:
    """Tests for resolve_now_playing."""

    def test_end_to_end_scenario(self) -> None:
        """JSON 404, HTML status yields the title, nothing else is probed."""
        session = FakeSession(
            {
                f"{ORIGIN}/status.xsl": FakeResponse(
                    body="<p>Current Song: <span>Artist - Track</span></p>",
                    content_type="text/html",
                ),
            }
        )

        title = resolve_now_playing(STREAM, session=session)

        assert title == "Artist - Track"
        assert session.requested == [f"{ORIGIN}/status-json.xsl", f"{ORIGIN}/status.xsl"]

    def test_short_circuits_on_first_title(self) -> None:
        """A title from the first candidate stops all further probes."""
        session = FakeSession(
            {
                f"{ORIGIN}/status-json.xsl": FakeResponse(
                    body=icestats({"title": "First"}), content_type="application/json"
                ),
                f"{ORIGIN}/status.xsl": FakeResponse(body="Stream Title: Second"),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "First"
        assert len(session.requested) == 1

    def test_audio_content_type_is_not_read(self) -> None:
        """A 200 audio/mpeg answer is closed unread and the next candidate tried."""
        audio = FakeResponse(body=b"\xff\xfb" * 100, content_type="audio/mpeg")
        session = FakeSession(
            {
                f"{ORIGIN}/status-json.xsl": audio,
                f"{ORIGIN}/status.xsl": FakeResponse(body="Stream Title: Fallback"),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Fallback"
        assert audio.body_read is False
        assert audio.closed is True
        assert session.requested[1] == f"{ORIGIN}/status.xsl"

    def test_network_errors_move_on(self) -> None:
        """Timeouts and connection errors are treated as 'try next'."""
        session = FakeSession(
            {
                f"{ORIGIN}/status-json.xsl": requests.Timeout("slow"),
                f"{ORIGIN}/status.xsl": requests.ConnectionError("refused"),
                f"{ORIGIN}/live/currentsong": FakeResponse(body="  Mount Song \n"),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Mount Song"
        assert len(session.requested) == 3

    def test_invalid_json_moves_on(self) -> None:
        """A broken JSON status page does not stop the search."""
        session = FakeSession(
            {
                f"{ORIGIN}/status-json.xsl": FakeResponse(body="{broken"),
                f"{ORIGIN}/currentsong": FakeResponse(body="Global Song"),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Global Song"
        assert session.requested == [
            f"{ORIGIN}/status-json.xsl",
            f"{ORIGIN}/status.xsl",
            f"{ORIGIN}/live/currentsong",
            f"{ORIGIN}/currentsong",
        ]

    def test_all_candidates_fail_returns_empty(self) -> None:
        """No title anywhere is a normal empty result."""
        session = FakeSession({})

        assert resolve_now_playing(STREAM, session=session) == ""
        assert len(session.requested) == 4

    def test_empty_currentsong_is_not_a_title(self) -> None:
        """Whitespace-only bodies do not count as titles."""
        session = FakeSession(
            {
                f"{ORIGIN}/live/currentsong": FakeResponse(body="   "),
                f"{ORIGIN}/currentsong": FakeResponse(body="Real Title"),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Real Title"

    def test_requests_use_timeout_and_streaming(self) -> None:
        """Every request is bounded by the configured timeout and streams the body."""
        session = FakeSession({})

        resolve_now_playing(STREAM, session=session, config=ResolverConfig(probe_timeout=2.0))

        assert all(kwargs["timeout"] == 2.0 for kwargs in session.kwargs)
        assert all(kwargs["stream"] is True for kwargs in session.kwargs)

    def test_responses_are_closed(self) -> None:
        """Responses are released whether or not they yield a title."""
        failing = FakeResponse(status_code=500)
        success = FakeResponse(body="Stream Title: Ok")
        session = FakeSession(
            {f"{ORIGIN}/status-json.xsl": failing, f"{ORIGIN}/status.xsl": success}
        )

        resolve_now_playing(STREAM, session=session)

        assert failing.closed and success.closed
        assert failing.body_read is False

    def test_body_is_capped(self) -> None:
        """Only max_body_bytes of a body are parsed."""
        session = FakeSession(
            {f"{ORIGIN}/status-json.xsl": FakeResponse(body="x" * 10000)}
        )
        config = ResolverConfig(max_body_bytes=16)

        # Truncated garbage is not a title, search continues
        assert resolve_now_playing(STREAM, session=session, config=config) == ""

    def test_utf8_title_without_charset(self) -> None:
        """text/plain without a charset is decoded as UTF-8, not ISO-8859-1."""
        session = FakeSession(
            {
                f"{ORIGIN}/live/currentsong": FakeResponse(
                    body="Café – Ñandú", content_type="text/plain", encoding="ISO-8859-1"
                ),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Café – Ñandú"

    def test_declared_charset_is_honored(self) -> None:
        """An explicit charset in Content-Type decides the decoding."""
        session = FakeSession(
            {
                f"{ORIGIN}/live/currentsong": FakeResponse(
                    body="Canción".encode("iso-8859-1"),
                    content_type="text/plain; charset=iso-8859-1",
                ),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Canción"

    def test_unknown_charset_falls_back_to_utf8(self) -> None:
        session = FakeSession(
            {
                f"{ORIGIN}/live/currentsong": FakeResponse(
                    body="Ñandú", content_type="text/plain; charset=x-made-up"
                ),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Ñandú"

    def test_large_multi_mount_status_fits_default_cap(self) -> None:
        """A ~100 KB status-json with the matching mount listed last still resolves."""
        sources = [
            {
                "listenurl": f"{ORIGIN}/relay{i:04d}",
                "server_name": f"Relay {i}",
                "server_description": "x" * 200,
                "title": f"Relay Song {i}",
            }
            for i in range(400)
        ]
        sources.append(
            {"listenurl": f"{ORIGIN}/live", "server_name": "Live", "title": "Live Song"}
        )
        body = icestats(sources)
        assert len(body) > 100_000
        session = FakeSession(
            {
                f"{ORIGIN}/status-json.xsl": FakeResponse(
                    body=body, content_type="application/json"
                ),
            }
        )

        assert resolve_now_playing(STREAM, session=session) == "Live Song"
        assert len(session.requested) == 1

    def test_mount_status_probes_when_enabled(self) -> None:
        """probe_mount_status inserts the mount JSON page second."""
        session = FakeSession(
            {
                f"{ORIGIN}/live/status-json.xsl": FakeResponse(
                    body=icestats({"title": "Mount JSON"})
                ),
            }
        )
        config = ResolverConfig(probe_mount_status=True)

        assert resolve_now_playing(STREAM, session=session, config=config) == "Mount JSON"
        assert session.requested == [
            f"{ORIGIN}/status-json.xsl",
            f"{ORIGIN}/live/status-json.xsl",
        ]

    @pytest.mark.parametrize("stream", [None, "", "   ", 123])
    def test_missing_stream_raises(self, stream) -> None:
        """Missing or non-string input is an input error."""
        with pytest.raises(InvalidStreamError, match="Missing stream"):
            resolve_now_playing(stream, session=FakeSession({}))

    def test_invalid_url_raises_without_network(self) -> None:
        """An unparseable URL is rejected before any probe."""
        session = FakeSession({})

        with pytest.raises(InvalidStreamError):
            resolve_now_playing("radio.example.com/live", session=session)
        assert session.requested == []
