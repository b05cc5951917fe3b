"""Shared Rich Console for CLI output."""

from rich.console import Console

_console: Console | None = None


def get_console() -> Console:
    """Get or create the process-wide Console."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def safe_print(message: str, style: str | None = None) -> None:
    """Print a line, optionally styled (e.g. "bold red")."""
    console = get_console()
    if style:
        console.print(message, style=style, markup=False)
    else:
        console.print(message, markup=False)


def print_error(message: str) -> None:
    safe_print(f"Error: {message}", style="bold red")


def print_now_playing(text: str, station: str | None = None) -> None:
    """Print the now-playing line, prefixed by the station name if given."""
    prefix = f"{station} · " if station else ""
    safe_print(f"♪ {prefix}{text}", style="cyan")
