"""Shared fixtures."""

from pathlib import Path

import pytest
import yaml

from profilekit.config import ProfileConfig
from profilekit.storage.database import close_database


@pytest.fixture
def config(tmp_path):
    """Configuration isolated in a temporary directory."""
    cfg = ProfileConfig(
        config_path=tmp_path / "config.yaml",
        fragments_dir=tmp_path / "fragments",
        db_path=tmp_path / "profilekit.db",
        baseline_path=tmp_path / "baseline.json",
        enable_probe_cache=False,
    )
    yield cfg
    close_database()


@pytest.fixture
def user_config(tmp_path):
    """Configuration with only user fragments (bundled ones off)."""
    (tmp_path / "fragments").mkdir()
    cfg = ProfileConfig(
        config_path=tmp_path / "config.yaml",
        fragments_dir=tmp_path / "fragments",
        db_path=tmp_path / "profilekit.db",
        baseline_path=tmp_path / "baseline.json",
        enable_probe_cache=False,
        enable_builtin_fragments=False,
    )
    yield cfg
    close_database()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI's configuration at a temporary directory."""
    monkeypatch.setenv("PROFILEKIT_CONFIG_PATH", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("PROFILEKIT_FRAGMENTS_DIR", str(tmp_path / "fragments"))
    monkeypatch.setenv("PROFILEKIT_DB_PATH", str(tmp_path / "profilekit.db"))
    monkeypatch.setenv("PROFILEKIT_BASELINE_PATH", str(tmp_path / "baseline.json"))
    monkeypatch.setenv("PROFILEKIT_ENABLE_PROBE_CACHE", "false")
    yield tmp_path
    close_database()


def write_fragment(directory: Path, file_name: str, data: dict) -> Path:
    """Write a fragment document and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file_name
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path
