"""
Pytest configuration and fixtures.
"""

import os
import stat
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Set test environment before blackdot.config builds its global Settings
os.environ["BLACKDOT_CONFIG_DIR"] = tempfile.mkdtemp(prefix="blackdot-test-")
os.environ["BLACKDOT_LOG_LEVEL"] = "WARNING"
os.environ.pop("BLACKDOT_HOOKS_DISABLED", None)


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch) -> Path:
    """A fresh config directory, also exported for code that builds Settings()."""
    path = tmp_path / "blackdot"
    path.mkdir()
    (path / "hooks").mkdir()
    monkeypatch.setenv("BLACKDOT_CONFIG_DIR", str(path))
    return path


@pytest.fixture
def hooks_dir(config_dir: Path) -> Path:
    return config_dir / "hooks"


@pytest.fixture
def hooks_file(config_dir: Path) -> Path:
    return config_dir / "hooks.json"


@pytest.fixture
def features():
    from blackdot.core.features.registry import FeatureRegistry

    return FeatureRegistry()


@pytest.fixture
def engine(hooks_dir: Path, hooks_file: Path, features):
    """Hook engine over the temp config dir, with short timeouts."""
    from blackdot.core.hooks.engine import HookEngine

    return HookEngine(
        hooks_dir=hooks_dir,
        hooks_file=hooks_file,
        features=features,
        timeout=5.0,
    )


@pytest.fixture
def test_client(config_dir: Path) -> TestClient:
    """FastAPI test client over a fresh config dir."""
    from blackdot.config import reload_settings

    reload_settings()

    # Import app after setting environment
    from blackdot.server import app

    with TestClient(app) as client:
        yield client


def write_script(directory: Path, name: str, body: str, executable: bool = True) -> Path:
    """Create a shell hook script under directory."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    if executable:
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    else:
        path.chmod(0o644)
    return path


@pytest.fixture
def make_script():
    """Fixture form of write_script for tests."""
    return write_script
