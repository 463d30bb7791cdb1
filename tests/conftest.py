"""Shared test fixtures for sancho."""

import os
import tempfile

import pytest


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
            "storage_dir": os.path.join(tmp_dir, "data", "storage"),
        },
        "journal": {
            "save_delay": 2.0,
            "max_retries": 2,
            "switch_policy": "prompt",
        },
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep a developer's SANCHO_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("SANCHO_"):
            monkeypatch.delenv(key, raising=False)
