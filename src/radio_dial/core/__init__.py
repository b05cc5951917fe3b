"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (Loguru)
"""

from .config import (
    Config,
    LoggingConfig,
    PlayerConfig,
    PollingConfig,
    ResolverConfig,
    WebConfig,
    create_default_config,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .output import get_log_file_path, setup_from_config, setup_loguru

__all__ = [
    # Config
    "Config",
    "LoggingConfig",
    "PlayerConfig",
    "PollingConfig",
    "ResolverConfig",
    "WebConfig",
    "create_default_config",
    "ensure_directories",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    # Logging
    "get_log_file_path",
    "setup_from_config",
    "setup_loguru",
]
