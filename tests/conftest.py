"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from storyctl.config import AppConfig, load_config


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip expensive tests during mutation runs."""
    if not os.environ.get("MUTANT_UNDER_TEST"):
        return
    skip_marker = pytest.mark.skip(reason="Skipped during mutation run to avoid timeouts.")
    for item in items:
        if "mutation_timeout" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def sandbox_env(tmp_path: Path) -> dict[str, str]:
    """Return ``STORYCTL_*`` variables pointing every directory into *tmp_path*."""
    return {
        "STORYCTL_HOME": str(tmp_path / "home"),
        "STORYCTL_BIN_DIR": str(tmp_path / "bin"),
        "STORYCTL_STATE_DIR": str(tmp_path / "state"),
        "STORYCTL_LOGS_DIR": str(tmp_path / "logs"),
        "STORYCTL_RUNTIME_DIR": str(tmp_path / "run"),
        "STORYCTL_TEMPLATES_DIR": str(tmp_path / "templates"),
        "STORYCTL_SYSTEMD__UNIT_DIR": str(tmp_path / "systemd"),
        "STORYCTL_LOCK_TIMEOUT": "0.2",
    }


@pytest.fixture
def app_config(tmp_path: Path, sandbox_env: dict[str, str]) -> AppConfig:
    """Return a configuration whose paths all live under the temporary directory."""
    return load_config(config_file=tmp_path / "missing.yml", env=sandbox_env)
