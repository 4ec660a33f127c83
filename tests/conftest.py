"""Shared fixtures for coderemoval tests."""

import pytest

from coderemoval.config import MarkerConfig


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory and ambient build mode."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("CODE_REMOVAL_CONFIG", "NODE_ENV", "VITEST"):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def config():
    """Default marker configuration."""
    return MarkerConfig.default()


def normalize(code: str) -> str:
    """Trim every line and drop blank ones, for layout-insensitive comparisons."""
    return "\n".join(line.strip() for line in code.split("\n") if line.strip())
