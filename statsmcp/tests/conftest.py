"""
Shared pytest setup for statsmcp tests.

The environment is prepared before any application module is imported so
``statsmcp.main`` builds its settings and providers without MCP mounting and
with a dummy e-Stat application id.
"""
from __future__ import annotations

import os

import pytest

os.environ.setdefault("DISABLE_MCP", "1")
os.environ.setdefault("ESTAT_API_KEY", "test-app-id")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture(autouse=True)
def test_environment():
    """Restore the environment and cached settings after every test."""
    from statsmcp.config import get_settings

    old_env = os.environ.copy()
    get_settings.cache_clear()
    yield
    os.environ.clear()
    os.environ.update(old_env)
    get_settings.cache_clear()
