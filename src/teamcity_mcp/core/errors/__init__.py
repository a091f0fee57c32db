"""Unified error hierarchy for teamcity-mcp.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from teamcity_mcp.core.errors import NotFoundError, CircuitOpenError
    from teamcity_mcp.core.errors import error_to_response
"""

# --- Hierarchy errors ---
from teamcity_mcp.core.errors.hierarchy import EntityParseError, StructuralError

# --- Locator / parsing errors ---
from teamcity_mcp.core.errors.locator import LocatorValidationError, PageParseError

# --- Resilience errors ---
from teamcity_mcp.core.errors.resilience import CircuitOpenError

# --- TeamCity transport errors ---
from teamcity_mcp.core.errors.teamcity import (
    ClientError,
    ErrorKind,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TeamCityAPIError,
    TeamCityTimeoutError,
    TransientNetworkError,
)

# --- Registry ---
from teamcity_mcp.core.errors.base import ERROR_MAPPINGS, error_to_response  # noqa: E402

__all__ = [
    # Registry
    "ERROR_MAPPINGS",
    "error_to_response",
    # TeamCity transport errors
    "ErrorKind",
    "TeamCityAPIError",
    "TransientNetworkError",
    "TeamCityTimeoutError",
    "RateLimitedError",
    "ClientError",
    "NotFoundError",
    "ServerError",
    # Resilience errors
    "CircuitOpenError",
    # Hierarchy errors
    "StructuralError",
    "EntityParseError",
    # Locator / parsing errors
    "LocatorValidationError",
    "PageParseError",
]
