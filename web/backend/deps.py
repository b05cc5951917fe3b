from functools import lru_cache
from typing import Generator

import requests

from radio_dial.core.config import Config, load_config


@lru_cache(maxsize=1)
def get_config() -> Config:
    """FastAPI dependency for configuration (loaded once per process)."""
    return load_config()


def get_http_session() -> Generator[requests.Session, None, None]:
    """FastAPI dependency for an outbound HTTP session."""
    session = requests.Session()
    try:
        yield session
    finally:
        session.close()
