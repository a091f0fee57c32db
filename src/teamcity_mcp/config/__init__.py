"""Configuration package for teamcity-mcp.

Sub-modules:
    parsing  – Boolean/integer/list parsing helpers
    domains  – ConnectionSettings, RetrySettings, CircuitBreakerSettings,
               PaginationSettings, HierarchySettings
    server   – ServerConfig dataclass, get_config/set_config globals
    loader   – ServerConfig loading/validation mixin (_ServerConfigLoader)
"""

from teamcity_mcp.config.domains import (  # noqa: F401
    CircuitBreakerSettings,
    ConnectionSettings,
    HierarchySettings,
    PaginationSettings,
    RetrySettings,
)
from teamcity_mcp.config.parsing import (  # noqa: F401
    _parse_bool,
    _parse_int,
    _parse_list,
    _try_parse_bool,
)
from teamcity_mcp.config.server import (  # noqa: F401
    _PACKAGE_VERSION,
    ServerConfig,
    get_config,
    set_config,
)
