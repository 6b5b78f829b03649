"""
Test Configuration
==================

Shared fixtures: isolated settings/env, sample documents and agent pool
cleanup.
"""

import json
from pathlib import Path

import pytest
import yaml

from core.config import AppSettings, get_settings
from core.log import configure_logging
from core.state import shutdown_agents


@pytest.fixture(scope="session", autouse=True)
def configure_test_logging():
    """Configure logging once, bound to the session streams."""
    configure_logging(AppSettings(log_level="WARNING", log_json=True), force=True)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep tests away from the real user config and cached settings."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("MAPKIT_PATH_SEPARATOR", "MAPKIT_INDENT", "MAPKIT_DEFAULT_FORMAT", "MAPKIT_REF_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def agents():
    """Stop the agent pools after a test that uses them."""
    yield
    shutdown_agents(wait=True)


@pytest.fixture
def sample_document():
    return {
        "name": "api",
        "server": {"host": "localhost", "port": 8080},
        "tags": ["a", "b"],
        "counters": {"visits": 3},
    }


@pytest.fixture
def json_file(tmp_path, sample_document) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_document), encoding="utf-8")
    return path


@pytest.fixture
def yaml_file(tmp_path, sample_document) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(sample_document), encoding="utf-8")
    return path
