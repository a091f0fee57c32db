"""ServerConfig loading and validation logic.

Provides ``_ServerConfigLoader``, a mixin class whose methods are inherited by
``ServerConfig`` (defined in ``server.py``). Splitting loading/validation
logic into its own module keeps ``server.py`` focused on field definitions and
simple accessor methods.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, cast

if TYPE_CHECKING:
    from teamcity_mcp.config.server import ServerConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from teamcity_mcp.config.domains import (
    CircuitBreakerSettings,
    ConnectionSettings,
    HierarchySettings,
    PaginationSettings,
    RetrySettings,
)
from teamcity_mcp.config.parsing import _parse_bool, _parse_list

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV_VAR = "TEAMCITY_MCP_CONFIG_FILE"
CONFIG_DIR_NAME = "teamcity-mcp"
HOME_CONFIG_NAME = ".teamcity-mcp.toml"
PROJECT_CONFIG_NAME = "teamcity-mcp.toml"

# (section attribute on ServerConfig, section class)
_SECTIONS: Dict[str, Any] = {
    "connection": ConnectionSettings,
    "retry": RetrySettings,
    "circuit_breaker": CircuitBreakerSettings,
    "pagination": PaginationSettings,
    "hierarchy": HierarchySettings,
}

# Environment variable -> (section, field). Earlier names win over aliases.
_ENV_OVERRIDES: List[Tuple[Tuple[str, ...], str, str]] = [
    (("TEAMCITY_URL", "TEAMCITY_SERVER_URL"), "connection", "base_url"),
    (("TEAMCITY_TOKEN", "TEAMCITY_API_TOKEN"), "connection", "token"),
    (("TEAMCITY_MCP_TIMEOUT_SECONDS",), "connection", "timeout_seconds"),
    (("TEAMCITY_MCP_VERIFY_SSL",), "connection", "verify_ssl"),
    (("TEAMCITY_MCP_RETRY_ENABLED",), "retry", "enabled"),
    (("TEAMCITY_MCP_MAX_RETRIES",), "retry", "max_retries"),
    (("TEAMCITY_MCP_RETRY_BASE_DELAY_MS",), "retry", "base_delay_ms"),
    (("TEAMCITY_MCP_RETRY_MAX_DELAY_MS",), "retry", "max_delay_ms"),
    (("TEAMCITY_MCP_RETRY_EXPONENTIAL",), "retry", "exponential"),
    (("TEAMCITY_MCP_CIRCUIT_BREAKER_ENABLED",), "circuit_breaker", "enabled"),
    (("TEAMCITY_MCP_CIRCUIT_FAILURE_THRESHOLD",), "circuit_breaker", "failure_threshold"),
    (("TEAMCITY_MCP_CIRCUIT_RESET_TIMEOUT_MS",), "circuit_breaker", "reset_timeout_ms"),
    (("TEAMCITY_MCP_CIRCUIT_SUCCESS_THRESHOLD",), "circuit_breaker", "success_threshold"),
    (("TEAMCITY_MCP_PAGE_SIZE",), "pagination", "default_page_size"),
    (("TEAMCITY_MCP_MAX_PAGE_SIZE",), "pagination", "max_page_size"),
    (("TEAMCITY_MCP_AUTO_FETCH_ALL",), "pagination", "auto_fetch_all"),
    (("TEAMCITY_MCP_MAX_PAGES",), "pagination", "default_max_pages"),
    (("TEAMCITY_MCP_ROOT_PROJECT_ID",), "hierarchy", "root_id"),
    (("TEAMCITY_MCP_MAX_DEPTH",), "hierarchy", "default_max_depth"),
]


class _ServerConfigLoader:
    """Mixin providing config-loading methods for ``ServerConfig``.

    These methods are inherited by the ``ServerConfig`` dataclass defined in
    ``server.py``. At runtime ``self`` is always a ``ServerConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        server_name: str
        server_version: str
        disabled_tools: List[str]
        connection: ConnectionSettings
        retry: RetrySettings
        circuit_breaker: CircuitBreakerSettings
        pagination: PaginationSettings
        hierarchy: HierarchySettings
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ServerConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit config file (argument or TEAMCITY_MCP_CONFIG_FILE)
        3. Project TOML config (./teamcity-mcp.toml)
        4. User TOML config (~/.teamcity-mcp.toml)
        5. XDG config (~/.config/teamcity-mcp/config.toml)
        6. Default values
        """
        config = cls()

        xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        layered = [
            Path(xdg_config_home) / CONFIG_DIR_NAME / "config.toml",
            Path.home() / HOME_CONFIG_NAME,
            Path(PROJECT_CONFIG_NAME),
        ]
        for path in layered:
            if path.exists():
                config._load_toml(path)
                logger.debug(f"Loaded config from {path}")

        explicit = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        if explicit:
            config._load_toml(Path(explicit))

        config._load_env()
        config._validate_startup_configuration()

        return cast("ServerConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            self._add_startup_warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            self._add_startup_warning(f"Could not read config file {path}: {e}")
            return

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

        if "server" in data:
            srv = data["server"]
            if "name" in srv:
                self.server_name = str(srv["name"])
            if "version" in srv:
                self.server_version = str(srv["version"])

        if "tools" in data and "disabled_tools" in data["tools"]:
            self.disabled_tools = _parse_list(data["tools"]["disabled_tools"])

        warnings: List[str] = []
        for name, section_cls in _SECTIONS.items():
            if name not in data:
                continue
            section = data[name]
            if not isinstance(section, dict):
                self._add_startup_warning(
                    f"Ignoring [{name}] in {path}: expected table/dict, got {type(section).__name__}"
                )
                continue
            setattr(
                self,
                name,
                section_cls.from_toml_dict(section, base=getattr(self, name), warnings=warnings),
            )
        for warning in warnings:
            self._add_startup_warning(f"{path}: {warning}")

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := os.environ.get("TEAMCITY_MCP_LOG_LEVEL"):
            self.log_level = level.upper()

        if structured := os.environ.get("TEAMCITY_MCP_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        if disabled := os.environ.get("TEAMCITY_MCP_DISABLED_TOOLS"):
            self.disabled_tools = _parse_list(disabled)

        # Millisecond timeout alias kept for existing deployments
        if timeout_ms := os.environ.get("TEAMCITY_TIMEOUT"):
            try:
                self.connection.timeout_seconds = int(timeout_ms) / 1000
            except ValueError:
                self._add_startup_warning(f"Ignoring TEAMCITY_TIMEOUT: expected milliseconds, got {timeout_ms!r}")

        warnings: List[str] = []
        for names, section, field_name in _ENV_OVERRIDES:
            value = next((os.environ[n] for n in names if os.environ.get(n)), None)
            if value is None:
                continue
            if field_name == "default_max_pages" and value.strip().lower() in {"none", "unlimited", "0"}:
                self.pagination.default_max_pages = None
                continue
            current = getattr(self, section)
            setattr(
                self,
                section,
                _SECTIONS[section].from_toml_dict({field_name: value}, base=current, warnings=warnings),
            )
        for warning in warnings:
            self._add_startup_warning(f"environment: {warning}")

    def _validate_startup_configuration(self) -> None:
        """Collect configuration problems as startup warnings. Never raises."""
        if not self.connection.base_url:
            self._add_startup_warning("TeamCity URL is not configured (set TEAMCITY_URL)")
        elif not self.connection.base_url.startswith(("http://", "https://")):
            self._add_startup_warning(f"TeamCity URL must start with http:// or https://, got {self.connection.base_url!r}")
        if not self.connection.token:
            self._add_startup_warning("TeamCity token is not configured (set TEAMCITY_TOKEN)")
        if self.connection.timeout_seconds < 1:
            self._add_startup_warning(
                f"Request timeout must be at least 1 second, got {self.connection.timeout_seconds}"
            )
        if self.retry.max_delay_ms < self.retry.base_delay_ms:
            self._add_startup_warning(
                f"retry.max_delay_ms ({self.retry.max_delay_ms}) is below base_delay_ms ({self.retry.base_delay_ms})"
            )
        if self.pagination.default_page_size > self.pagination.max_page_size:
            self._add_startup_warning(
                f"pagination.default_page_size ({self.pagination.default_page_size}) exceeds "
                f"max_page_size ({self.pagination.max_page_size}); it will be clamped"
            )

        for warning in self.startup_warnings:
            logger.warning(warning)
