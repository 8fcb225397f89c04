"""Pytest configuration and fixtures."""

import os

import pytest

from heo.core.config import get_settings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["GEMINI_API_KEY"] = "test-gemini-key"
    os.environ["OXIGRAPH_ENDPOINT_URL"] = "http://oxigraph.test"
    os.environ["IPFS_ENDPOINT"] = "http://ipfs.test/api/v0"
    os.environ["HEO_ENV"] = "test"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
