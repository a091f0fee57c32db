"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exception types to (ErrorCode, ErrorType) tuples,
enabling consistent error response generation across the tool layer.

Usage:
    from teamcity_mcp.core.errors.base import error_to_response

    try:
        do_something()
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple, Type

from teamcity_mcp.core.errors.hierarchy import EntityParseError, StructuralError
from teamcity_mcp.core.errors.locator import LocatorValidationError, PageParseError
from teamcity_mcp.core.errors.resilience import CircuitOpenError
from teamcity_mcp.core.errors.teamcity import (
    ClientError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    TeamCityAPIError,
    TeamCityTimeoutError,
    TransientNetworkError,
)
from teamcity_mcp.core.responses.builders import error_response
from teamcity_mcp.core.responses.types import ErrorCode, ErrorType

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    # --- TeamCity transport errors ---
    TransientNetworkError: (ErrorCode.UNAVAILABLE, ErrorType.UNAVAILABLE),
    TeamCityTimeoutError: (ErrorCode.UPSTREAM_TIMEOUT, ErrorType.UNAVAILABLE),
    RateLimitedError: (ErrorCode.RATE_LIMIT_EXCEEDED, ErrorType.RATE_LIMIT),
    NotFoundError: (ErrorCode.NOT_FOUND, ErrorType.NOT_FOUND),
    ClientError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    ServerError: (ErrorCode.UPSTREAM_ERROR, ErrorType.INTERNAL),
    TeamCityAPIError: (ErrorCode.UPSTREAM_ERROR, ErrorType.INTERNAL),
    # --- Resilience errors ---
    CircuitOpenError: (ErrorCode.CIRCUIT_OPEN, ErrorType.UNAVAILABLE),
    # --- Traversal / parsing errors ---
    StructuralError: (ErrorCode.CIRCULAR_DEPENDENCY, ErrorType.CONFLICT),
    LocatorValidationError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    PageParseError: (ErrorCode.INVALID_RESPONSE, ErrorType.INTERNAL),
    EntityParseError: (ErrorCode.INVALID_RESPONSE, ErrorType.INTERNAL),
}

_STATUS_OVERRIDES: Dict[int, Tuple[ErrorCode, ErrorType]] = {
    401: (ErrorCode.UNAUTHORIZED, ErrorType.AUTHENTICATION),
    403: (ErrorCode.FORBIDDEN, ErrorType.AUTHORIZATION),
}


def _lookup(exc: Exception) -> Optional[Tuple[ErrorCode, ErrorType]]:
    for klass in type(exc).__mro__:
        mapping = ERROR_MAPPINGS.get(klass)
        if mapping is not None:
            return mapping
    return None


def error_to_response(exc: Exception) -> Optional[dict]:
    """Convert a known exception to a standard error_response dict, or None if unknown.

    Walks the exception's MRO so subclasses inherit their parent's mapping
    unless registered explicitly. Client errors carrying 401/403 map to the
    authentication and authorization categories.

    Args:
        exc: The exception to convert.

    Returns:
        A dict suitable for MCP tool response, or None if no class in the
        exception's MRO is registered in ERROR_MAPPINGS.
    """
    mapping = _lookup(exc)
    if mapping is None:
        return None

    details: Dict[str, Any] = {}
    if isinstance(exc, TeamCityAPIError):
        details = exc.to_dict()
        if isinstance(exc, ClientError) and exc.status_code in _STATUS_OVERRIDES:
            mapping = _STATUS_OVERRIDES[exc.status_code]
    elif isinstance(exc, CircuitOpenError):
        details = {"breaker": exc.breaker_name, "retry_after": exc.retry_after}
    elif isinstance(exc, StructuralError):
        details = {"node_id": exc.node_id, "path": list(exc.path)}

    code, error_type = mapping
    return asdict(
        error_response(str(exc), error_code=code, error_type=error_type, details=details)
    )
