"""
Audio engine abstraction and the MPV implementation.

The player only talks to the AudioEngine protocol. MpvEngine drives an idle
mpv process over JSON IPC: commands go over one-shot socket connections and a
persistent connection is read on a background thread for playback events.
"""

import json
import os
import socket
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from .events import Aborted, Ended, EngineEvent, LoadFailed, PlaybackError, Started

EventHandler = Callable[[EngineEvent], None]

# Seconds to wait for mpv to create its IPC socket
MPV_STARTUP_TIMEOUT = 5.0
IPC_TIMEOUT = 2.0


class EngineError(RuntimeError):
    """Raised when the audio engine cannot carry out a command."""


class AudioEngine(Protocol):
    """What the fallback player needs from an audio backend."""

    def set_event_handler(self, handler: EventHandler) -> None: ...

    def load(self, url: str, attempt: int) -> None:
        """Assign a source without starting output. Events carry `attempt`."""
        ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None:
        """Cancel any in-flight load and drop the current source."""
        ...

    def set_volume(self, volume: float) -> None: ...

    def close(self) -> None: ...


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def mpv_request(
    socket_path: Optional[str], command: dict[str, Any]
) -> Optional[dict[str, Any]]:
    """Send a JSON IPC command to MPV and return its reply.

    mpv broadcasts events to every client, so lines without an "error" key
    are skipped until the command reply shows up.

    Returns:
        The reply object if mpv answered "success", otherwise None
    """
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(IPC_TIMEOUT)
        try:
            sock.connect(socket_path)
            sock.sendall((json.dumps(command) + "\n").encode("utf-8"))

            buffer = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    return None
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    try:
                        reply = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if "error" in reply:
                        return reply if reply.get("error") == "success" else None
        finally:
            sock.close()

    except (socket.error, OSError):
        return None


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send a JSON IPC command to MPV. True if it succeeded."""
    return mpv_request(socket_path, command) is not None


def _playlist_entry_id(reply: Optional[dict[str, Any]]) -> Optional[int]:
    """Entry id from a loadfile reply, None on mpv versions that omit it."""
    data = (reply or {}).get("data")
    if isinstance(data, dict) and isinstance(data.get("playlist_entry_id"), int):
        return data["playlist_entry_id"]
    return None


class MpvEngine:
    """AudioEngine backed by an mpv process in idle mode."""

    def __init__(self, socket_path: Optional[str] = None, volume: float = 1.0):
        self.socket_path = socket_path or str(
            Path(tempfile.gettempdir()) / f"radio-dial-mpv-{os.getpid()}"
        )
        self._volume = volume
        self._process: Optional[subprocess.Popen] = None
        self._event_sock: Optional[socket.socket] = None
        self._reader: Optional[threading.Thread] = None
        self._running = False
        self._handler: Optional[EventHandler] = None
        self._lock = threading.Lock()
        self._entries: dict[int, int] = {}  # mpv playlist_entry_id -> attempt
        self._pending: Optional[int] = None  # latest load not yet bound to an entry
        self._current: Optional[int] = None
        self._current_entry: Optional[int] = None
        self._loaded = False

    def set_event_handler(self, handler: EventHandler) -> None:
        self._handler = handler

    def start(self) -> None:
        """Start mpv with JSON IPC and attach the event reader.

        Raises:
            EngineError: If mpv cannot be started or its socket never appears
        """
        if self._running:
            return

        logger.info(f"Starting MPV with socket: {self.socket_path}")
        if os.path.exists(self.socket_path):
            logger.debug(f"Removing existing socket: {self.socket_path}")
            os.unlink(self.socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={round(self._volume * 100)}",
            "--load-scripts=no",
        ]
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise EngineError(f"Failed to start MPV: {e}") from e

        start_time = time.time()
        while not os.path.exists(self.socket_path):
            if time.time() - start_time > MPV_STARTUP_TIMEOUT:
                self._kill_process()
                raise EngineError(
                    f"MPV socket creation timeout after {MPV_STARTUP_TIMEOUT}s"
                )
            time.sleep(0.1)

        try:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.connect(self.socket_path)
            sock.settimeout(1.0)  # Lets the reader notice close()
        except OSError as e:
            self._kill_process()
            raise EngineError(f"Could not attach to MPV events: {e}") from e

        self._event_sock = sock
        self._running = True
        self._reader = threading.Thread(target=self._read_events, daemon=True)
        self._reader.start()
        logger.info("MPV started successfully")

    def _command(self, *args: Any) -> dict[str, Any]:
        reply = mpv_request(self.socket_path, {"command": list(args)})
        if reply is None:
            raise EngineError(f"MPV command failed: {args[0]}")
        return reply

    def load(self, url: str, attempt: int) -> None:
        # A replaced or stopped entry never gets a start-file, so only the
        # newest load can be waiting for one
        with self._lock:
            self._pending = attempt
        try:
            self._command("set_property", "pause", True)
            reply = self._command("loadfile", url, "replace")
        except EngineError:
            with self._lock:
                if self._pending == attempt:
                    self._pending = None
            raise

        entry_id = _playlist_entry_id(reply)
        if entry_id is None:
            return
        with self._lock:
            self._entries[entry_id] = attempt
            if self._pending == attempt:
                self._pending = None
            # start-file may have been read before this reply
            if self._current_entry == entry_id:
                self._current = attempt

    def play(self) -> None:
        self._command("set_property", "pause", False)

    def pause(self) -> None:
        self._command("set_property", "pause", True)

    def stop(self) -> None:
        with self._lock:
            self._pending = None
        self._command("stop")

    def set_volume(self, volume: float) -> None:
        self._volume = volume
        if self._running:
            self._command("set_property", "volume", round(volume * 100))

    def close(self) -> None:
        """Stop the event reader, kill mpv and remove its socket."""
        self._running = False

        if self._event_sock is not None:
            try:
                self._event_sock.close()
            except OSError:
                pass
            self._event_sock = None

        if self._reader and self._reader.is_alive():
            self._reader.join(timeout=2.0)
        self._reader = None

        self._kill_process()

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    def _kill_process(self) -> None:
        if self._process:
            try:
                self._process.kill()
                self._process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Process already terminated or couldn't be killed
            self._process = None

    def _read_events(self) -> None:
        """Read newline-delimited JSON events until close()."""
        buffer = b""
        sock = self._event_sock
        while self._running and sock is not None:
            try:
                chunk = sock.recv(4096)
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.warning(f"MPV event connection error: {e}")
                    self._connection_lost()
                return

            if not chunk:
                if self._running:
                    logger.warning("MPV event connection closed")
                    self._connection_lost()
                return

            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if not line.strip():
                    continue
                try:
                    message = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Ignoring malformed MPV message: {line!r}")
                    continue
                self.dispatch(message)

    def _connection_lost(self) -> None:
        with self._lock:
            attempt = self._current
        if attempt is not None and self._handler:
            self._handler(PlaybackError(attempt, "mpv exited"))

    def dispatch(self, message: dict[str, Any]) -> None:
        """Translate one mpv message and hand the result to the event handler."""
        event = self.translate(message)
        if event is not None and self._handler:
            self._handler(event)

    def translate(self, message: dict[str, Any]) -> Optional[EngineEvent]:
        """Map an mpv IPC event to an engine event (None if irrelevant)."""
        with self._lock:
            match message.get("event"):
                case "start-file":
                    entry_id = message.get("playlist_entry_id")
                    self._current_entry = entry_id
                    self._loaded = False
                    if entry_id in self._entries:
                        self._current = self._entries[entry_id]
                    else:
                        # loadfile reply not read yet, or mpv without entry ids
                        self._current = self._pending
                    if entry_id is not None:
                        # Older entries were replaced and will never start
                        self._entries = {
                            k: v for k, v in self._entries.items() if k >= entry_id
                        }
                    return None
                case "file-loaded":
                    self._loaded = True
                    if self._current is None:
                        return None
                    return Started(self._current)
                case "end-file":
                    return self._translate_end_file(message)
                case _:
                    return None

    def _translate_end_file(self, message: dict[str, Any]) -> Optional[EngineEvent]:
        entry_id = message.get("playlist_entry_id")
        if entry_id is not None and entry_id != self._current_entry:
            attempt, loaded = self._entries.get(entry_id), False
        else:
            attempt, loaded = self._current, self._loaded
        if attempt is None:
            return None

        reason = message.get("reason")
        match reason:
            case "error":
                detail = message.get("file_error") or "error"
                if loaded:
                    return PlaybackError(attempt, detail)
                return LoadFailed(attempt, detail)
            case "eof":
                if loaded:
                    return Ended(attempt)
                return LoadFailed(attempt, "stream ended before it loaded")
            case "stop" | "quit" | "redirect":
                return Aborted(attempt)
            case _:
                return PlaybackError(attempt, str(reason))
