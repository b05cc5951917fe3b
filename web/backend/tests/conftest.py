"""Pytest configuration for backend tests.

Points the config loader at a throwaway directory before the app is imported,
so loading config never writes into the real home directory.
"""

import os
import tempfile

os.environ["XDG_CONFIG_HOME"] = tempfile.mkdtemp(prefix="radio-dial-test-")

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from radio_dial.core.config import Config
from web.backend.deps import get_config, get_http_session
from web.backend.main import app


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def http_session() -> Mock:
    """Stand-in for the outbound requests.Session."""
    return Mock()


@pytest.fixture
def client(config, http_session):
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_http_session] = lambda: http_session
    yield TestClient(app)
    app.dependency_overrides.clear()
