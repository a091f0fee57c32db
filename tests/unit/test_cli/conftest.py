"""Shared fixtures for CLI command tests."""

import pytest
from click.testing import CliRunner

from teamcity_mcp.config import ServerConfig


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Configured TeamCity connection with no config files and no log handlers."""
    for name in ("TEAMCITY_MCP_CONFIG_FILE", "TEAMCITY_SERVER_URL", "TEAMCITY_API_TOKEN", "TEAMCITY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("TEAMCITY_URL", "https://tc.example.com")
    monkeypatch.setenv("TEAMCITY_TOKEN", "cli-secret-token")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(ServerConfig, "setup_logging", lambda self: None)
    return tmp_path
