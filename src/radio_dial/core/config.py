"""
Configuration management for Radio Dial
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_RSS_FEEDS = [
    "https://www.lamananaonline.com.ar/feed/",
    "https://diarioformosa.net/feed/",
    "https://www.expresdiario.com.ar/feed/",
]


@dataclass
class ResolverConfig:
    """Configuration for the now-playing metadata resolver."""

    probe_timeout: float = 2.0  # Seconds per candidate endpoint
    max_body_bytes: int = 1024 * 1024
    probe_mount_status: bool = False  # Also probe {mount}/status-json.xsl etc.
    user_agent: str = "RadioDial/1.0"

    def validate(self) -> None:
        """Validate resolver configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.probe_timeout <= 0:
            raise ValueError(f"probe_timeout must be positive, got {self.probe_timeout}")
        if self.max_body_bytes <= 0:
            raise ValueError(
                f"max_body_bytes must be positive, got {self.max_body_bytes}"
            )


@dataclass
class PlayerConfig:
    """Configuration for the stream player."""

    mpv_socket_path: Optional[str] = None
    volume: float = 1.0  # 0.0 - 1.0


@dataclass
class PollingConfig:
    """Configuration for now-playing polling."""

    interval: float = 15.0
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 5.0

    def validate(self) -> None:
        """Validate polling configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")


@dataclass
class WebConfig:
    """Configuration for the HTTP API."""

    host: str = "127.0.0.1"
    port: int = 8000
    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173"]
    )
    cache_max_age: int = 10  # s-maxage for /api/nowplaying
    stale_while_revalidate: int = 30
    rss_allowed_feeds: List[str] = field(default_factory=lambda: list(DEFAULT_RSS_FEEDS))
    rss_timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/radio-dial/radio-dial.log)
    )
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "radio-dial"
    return Path.home() / ".config" / "radio-dial"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    try:
        current = Path(__file__).resolve().parent
        for parent in [current] + list(current.parents):
            if (parent / "pyproject.toml").exists():
                config_path = parent / "config.toml"
                if config_path.exists():
                    return config_path
                return None
    except OSError:
        pass
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/radio-dial (or ~/.config/radio-dial)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "radio-dial"
    return Path.home() / ".local" / "share" / "radio-dial"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Radio Dial Configuration

[resolver]
# Timeout in seconds for each metadata endpoint probe
probe_timeout = 2.0

# Maximum bytes read from a metadata endpoint
max_body_bytes = 1048576

# Also probe mount-qualified status pages ({mount}/status-json.xsl, {mount}/status.xsl)
probe_mount_status = false

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/radio-dial-mpv"

# Default volume (0.0 - 1.0)
volume = 1.0

[polling]
# Seconds between now-playing refreshes
interval = 15.0

# Base URL of the now-playing API
api_base_url = "http://localhost:8000"

[web]
host = "127.0.0.1"
port = 8000
allowed_origins = ["http://localhost:5173"]

# Cache-Control for /api/nowplaying
cache_max_age = 10
stale_while_revalidate = 30

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/radio-dial/radio-dial.log)
# log_file = "/path/to/custom/radio-dial.log"

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data, falling back to defaults per section."""
    config = Config()

    if "resolver" in toml_data:
        resolver_data = toml_data["resolver"]
        config.resolver = ResolverConfig(
            probe_timeout=float(
                resolver_data.get("probe_timeout", config.resolver.probe_timeout)
            ),
            max_body_bytes=int(
                resolver_data.get("max_body_bytes", config.resolver.max_body_bytes)
            ),
            probe_mount_status=resolver_data.get(
                "probe_mount_status", config.resolver.probe_mount_status
            ),
            user_agent=resolver_data.get("user_agent", config.resolver.user_agent),
        )
        try:
            config.resolver.validate()
        except ValueError as e:
            print(f"Warning: Invalid resolver configuration: {e}")
            print("Using default resolver configuration.")
            config.resolver = ResolverConfig()

    if "player" in toml_data:
        player_data = toml_data["player"]
        socket_path = player_data.get("mpv_socket_path")
        config.player = PlayerConfig(
            mpv_socket_path=str(Path(socket_path).expanduser()) if socket_path else None,
            volume=max(0.0, min(1.0, float(player_data.get("volume", config.player.volume)))),
        )

    if "polling" in toml_data:
        polling_data = toml_data["polling"]
        config.polling = PollingConfig(
            interval=float(polling_data.get("interval", config.polling.interval)),
            api_base_url=polling_data.get("api_base_url", config.polling.api_base_url),
            request_timeout=float(
                polling_data.get("request_timeout", config.polling.request_timeout)
            ),
        )
        try:
            config.polling.validate()
        except ValueError as e:
            print(f"Warning: Invalid polling configuration: {e}")
            print("Using default polling configuration.")
            config.polling = PollingConfig()

    if "web" in toml_data:
        web_data = toml_data["web"]
        config.web = WebConfig(
            host=web_data.get("host", config.web.host),
            port=int(web_data.get("port", config.web.port)),
            allowed_origins=web_data.get("allowed_origins", config.web.allowed_origins),
            cache_max_age=int(web_data.get("cache_max_age", config.web.cache_max_age)),
            stale_while_revalidate=int(
                web_data.get("stale_while_revalidate", config.web.stale_while_revalidate)
            ),
            rss_allowed_feeds=web_data.get(
                "rss_allowed_feeds", config.web.rss_allowed_feeds
            ),
            rss_timeout=float(web_data.get("rss_timeout", config.web.rss_timeout)),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    """Override config values with environment variables if present."""
    log_level = os.environ.get("RADIO_DIAL_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    allowed_origins = os.environ.get("ALLOWED_ORIGINS")
    if allowed_origins:
        config.web.allowed_origins = [
            origin.strip() for origin in allowed_origins.split(",") if origin.strip()
        ]

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - RADIO_DIAL_LOG_LEVEL
    - ALLOWED_ORIGINS (comma separated)
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
        return _apply_env_overrides(_parse_config(toml_data))

    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        return _apply_env_overrides(Config())


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
