"""
Radio Dial CLI - resolve titles, play streams, run the API.
"""

import argparse
import sys
import threading
from functools import partial
from typing import List, Optional

from loguru import logger

from radio_dial.core.config import Config, ensure_directories, load_config
from radio_dial.core.console import print_error, print_now_playing, safe_print
from radio_dial.core.output import setup_from_config
from radio_dial.domain.radio import Radio, RadioSession, RadioStore
from radio_dial.domain.stream import (
    EngineError,
    InvalidStreamError,
    MpvEngine,
    NowPlayingClient,
    check_mpv_available,
    display_text,
    resolve_now_playing,
)


def run_resolve(config: Config, stream: str) -> int:
    """Print the current title of a stream once."""
    try:
        title = resolve_now_playing(stream, config=config.resolver)
    except InvalidStreamError as e:
        print_error(str(e))
        return 2
    safe_print(display_text(title, errored=not title))
    return 0


def run_play(config: Config, stream: str, api_url: Optional[str] = None) -> int:
    """Play a stream with URL fallback and show titles until interrupted."""
    if not check_mpv_available():
        print_error("mpv not found. Install mpv to play streams.")
        return 1

    engine = MpvEngine(config.player.mpv_socket_path, volume=config.player.volume)
    try:
        engine.start()
    except EngineError as e:
        print_error(str(e))
        return 1

    if api_url:
        fetch_title = NowPlayingClient(
            api_url, timeout=config.polling.request_timeout
        ).fetch_title
    else:
        fetch_title = partial(resolve_now_playing, config=config.resolver)

    store = RadioStore()
    store.set_volume(config.player.volume)
    session = RadioSession(
        store, engine, fetch_title, poll_interval=config.polling.interval
    )
    done = threading.Event()

    def on_change(new, old) -> None:
        if new.now_playing != old.now_playing or new.now_playing_error != old.now_playing_error:
            print_now_playing(display_text(new.now_playing, new.now_playing_error))
        if old.is_playing and not new.is_playing and session.player.stream:
            safe_print("Playback stopped", style="yellow")
            done.set()

    store.subscribe(on_change)
    store.set_is_playing(True)
    store.set_current_radio(Radio(id="cli", name=stream, stream_url=stream))
    safe_print(f"Playing {stream} (Ctrl-C to stop)", style="green")

    try:
        done.wait()
    except KeyboardInterrupt:
        pass
    finally:
        session.close()
    return 0


def run_serve(config: Config, host: Optional[str], port: Optional[int]) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "web.backend.main:app",
        host=host or config.web.host,
        port=port or config.web.port,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="radio-dial",
        description="Internet radio now-playing resolver and fallback player",
    )
    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    resolve_parser = subparsers.add_parser("resolve", help="Print the current title of a stream")
    resolve_parser.add_argument("stream", help="Stream URL")

    play_parser = subparsers.add_parser("play", help="Play a stream with URL fallback")
    play_parser.add_argument("stream", help="Stream URL")
    play_parser.add_argument(
        "--api",
        dest="api_url",
        help="Fetch titles from a running API instead of probing directly",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")

    args = parser.parse_args(argv)
    if not args.subcommand:
        parser.print_help()
        sys.exit(1)

    config = load_config()
    ensure_directories()
    setup_from_config(config.logging)
    logger.debug(f"Running subcommand: {args.subcommand}")

    if args.subcommand == "resolve":
        sys.exit(run_resolve(config, args.stream))
    elif args.subcommand == "play":
        sys.exit(run_play(config, args.stream, api_url=args.api_url))
    elif args.subcommand == "serve":
        sys.exit(run_serve(config, args.host, args.port))


if __name__ == "__main__":
    main()
