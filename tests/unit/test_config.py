"""Tests for layered ServerConfig loading (TOML files and environment)."""

from __future__ import annotations

import pytest

from teamcity_mcp.config import (
    CircuitBreakerSettings,
    PaginationSettings,
    RetrySettings,
    ServerConfig,
    _parse_int,
    _parse_list,
    _try_parse_bool,
)

_ENV_NAMES = [
    "TEAMCITY_URL",
    "TEAMCITY_SERVER_URL",
    "TEAMCITY_TOKEN",
    "TEAMCITY_API_TOKEN",
    "TEAMCITY_TIMEOUT",
    "TEAMCITY_MCP_CONFIG_FILE",
    "TEAMCITY_MCP_TIMEOUT_SECONDS",
    "TEAMCITY_MCP_MAX_RETRIES",
    "TEAMCITY_MCP_RETRY_ENABLED",
    "TEAMCITY_MCP_CIRCUIT_FAILURE_THRESHOLD",
    "TEAMCITY_MCP_PAGE_SIZE",
    "TEAMCITY_MCP_MAX_PAGES",
    "TEAMCITY_MCP_DISABLED_TOOLS",
    "TEAMCITY_MCP_LOG_LEVEL",
]


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point HOME/XDG/cwd at an empty temp dir and clear related env vars."""
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestParsingHelpers:
    def test_try_parse_bool(self):
        assert _try_parse_bool("Yes") is True
        assert _try_parse_bool("off") is False
        assert _try_parse_bool("maybe") is None

    def test_parse_int_minimum(self):
        value, warning = _parse_int("-1", 3, source="retry.max_retries", minimum=0)
        assert value == 3
        assert "retry.max_retries" in warning

    def test_parse_list(self):
        assert _parse_list("a, b,,c") == ["a", "b", "c"]
        assert _parse_list(["x", " "]) == ["x"]


class TestSectionMerge:
    """Each section merges over its base."""

    def test_missing_keys_keep_base(self):
        base = RetrySettings(max_retries=7)
        merged = RetrySettings.from_toml_dict({"base_delay_ms": 10}, base=base)
        assert merged.max_retries == 7
        assert merged.base_delay_ms == 10

    def test_invalid_value_warns_and_keeps_current(self):
        warnings: list = []
        merged = CircuitBreakerSettings.from_toml_dict({"failure_threshold": 0}, warnings=warnings)
        assert merged.failure_threshold == 5
        assert warnings and "failure_threshold" in warnings[0]

    def test_optional_int(self):
        assert PaginationSettings.from_toml_dict({"default_max_pages": "4"}).default_max_pages == 4


class TestServerConfigFromEnv:
    """Tests for ServerConfig.from_env."""

    def test_defaults_warn_about_missing_connection(self, isolated_env):
        config = ServerConfig.from_env()
        assert config.connection.base_url == ""
        assert any("URL is not configured" in w for w in config.startup_warnings)
        assert any("token is not configured" in w for w in config.startup_warnings)

    def test_env_values(self, isolated_env, monkeypatch):
        monkeypatch.setenv("TEAMCITY_URL", "https://tc.example.com")
        monkeypatch.setenv("TEAMCITY_TOKEN", "abc123")
        monkeypatch.setenv("TEAMCITY_MCP_MAX_RETRIES", "5")
        monkeypatch.setenv("TEAMCITY_MCP_RETRY_ENABLED", "false")
        monkeypatch.setenv("TEAMCITY_MCP_DISABLED_TOOLS", "agent-list, build-list")
        config = ServerConfig.from_env()
        assert config.connection.base_url == "https://tc.example.com"
        assert config.connection.token == "abc123"
        assert config.retry.max_retries == 5
        assert config.retry.enabled is False
        assert not config.is_tool_enabled("agent-list")
        assert config.startup_warnings == []

    def test_aliases(self, isolated_env, monkeypatch):
        monkeypatch.setenv("TEAMCITY_SERVER_URL", "https://alias.example.com")
        monkeypatch.setenv("TEAMCITY_API_TOKEN", "alias-token")
        monkeypatch.setenv("TEAMCITY_TIMEOUT", "45000")
        config = ServerConfig.from_env()
        assert config.connection.base_url == "https://alias.example.com"
        assert config.connection.token == "alias-token"
        assert config.connection.timeout_seconds == 45.0

    def test_primary_name_wins_over_alias(self, isolated_env, monkeypatch):
        monkeypatch.setenv("TEAMCITY_URL", "https://primary.example.com")
        monkeypatch.setenv("TEAMCITY_SERVER_URL", "https://alias.example.com")
        assert ServerConfig.from_env().connection.base_url == "https://primary.example.com"

    def test_invalid_env_value_becomes_warning(self, isolated_env, monkeypatch):
        monkeypatch.setenv("TEAMCITY_MCP_PAGE_SIZE", "lots")
        config = ServerConfig.from_env()
        assert config.pagination.default_page_size == 100
        assert any("default_page_size" in w for w in config.startup_warnings)

    def test_max_pages_unlimited(self, isolated_env, monkeypatch):
        (isolated_env / "teamcity-mcp.toml").write_text("[pagination]\ndefault_max_pages = 3\n")
        monkeypatch.setenv("TEAMCITY_MCP_MAX_PAGES", "unlimited")
        assert ServerConfig.from_env().pagination.default_max_pages is None


class TestTomlLayers:
    """Tests for TOML file layering."""

    def test_project_file(self, isolated_env):
        (isolated_env / "teamcity-mcp.toml").write_text(
            '[connection]\nbase_url = "https://toml.example.com"\ntoken = "t"\n'
            "[retry]\nmax_retries = 1\n"
            "[circuit_breaker]\nfailure_threshold = 2\n"
            '[logging]\nlevel = "debug"\n'
            '[tools]\ndisabled_tools = ["project-hierarchy"]\n'
        )
        config = ServerConfig.from_env()
        assert config.connection.base_url == "https://toml.example.com"
        assert config.retry.max_retries == 1
        assert config.circuit_breaker.failure_threshold == 2
        assert config.log_level == "DEBUG"
        assert config.disabled_tools == ["project-hierarchy"]

    def test_explicit_file_overrides_project_file_and_env_overrides_both(self, isolated_env, monkeypatch):
        (isolated_env / "teamcity-mcp.toml").write_text("[retry]\nmax_retries = 1\nbase_delay_ms = 10\n")
        explicit = isolated_env / "explicit.toml"
        explicit.write_text("[retry]\nmax_retries = 2\n")
        monkeypatch.setenv("TEAMCITY_MCP_MAX_RETRIES", "9")

        config = ServerConfig.from_env(str(explicit))
        assert config.retry.max_retries == 9
        assert config.retry.base_delay_ms == 10

    def test_missing_explicit_file_warns(self, isolated_env):
        config = ServerConfig.from_env(str(isolated_env / "nope.toml"))
        assert any("Config file not found" in w for w in config.startup_warnings)

    def test_invalid_section_type_warns(self, isolated_env):
        (isolated_env / "teamcity-mcp.toml").write_text('retry = "fast"\n')
        config = ServerConfig.from_env()
        assert any("Ignoring [retry]" in w for w in config.startup_warnings)

    def test_public_dict_masks_token(self, isolated_env, monkeypatch):
        monkeypatch.setenv("TEAMCITY_TOKEN", "super-secret")
        data = ServerConfig.from_env().to_public_dict()
        assert data["connection"]["token"] == "****"
        assert "startup_warnings" not in data
