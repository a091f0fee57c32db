"""Domain-specific configuration dataclasses.

Contains small, focused configuration classes for the connection, retry
policy, circuit breaker, pagination and hierarchy traversal. Each class
reads its own TOML table with ``from_toml_dict``; keys missing from the
table keep the values of ``base`` so config layers stack.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Optional

from teamcity_mcp.config.parsing import _parse_float, _parse_int, _try_parse_bool


def _merge(
    base: Any,
    data: Dict[str, Any],
    *,
    source: str,
    warnings: Optional[List[str]],
    minimums: Optional[Dict[str, int]] = None,
) -> Any:
    """Return ``base`` updated with recognised keys from ``data``."""
    minimums = minimums or {}
    updates: Dict[str, Any] = {}

    for f in fields(base):
        if f.name not in data:
            continue
        raw = data[f.name]
        current = getattr(base, f.name)
        label = f"{source}.{f.name}"
        warning: Optional[str] = None

        if isinstance(current, bool):
            parsed = _try_parse_bool(raw)
            if parsed is None:
                warning = f"Ignoring {label}: expected a boolean, got {raw!r}"
            else:
                updates[f.name] = parsed
        elif isinstance(current, float):
            updates[f.name], warning = _parse_float(raw, current, source=label)
        elif isinstance(current, int) or f.name in minimums:
            updates[f.name], warning = _parse_int(raw, current, source=label, minimum=minimums.get(f.name))
        else:
            updates[f.name] = None if raw is None else str(raw)

        if warning and warnings is not None:
            warnings.append(warning)

    return replace(base, **updates)


@dataclass
class ConnectionSettings:
    """How to reach the TeamCity server.

    Attributes:
        base_url: Server root, e.g. ``https://teamcity.example.com``
        token: Bearer token; read from the environment or TOML only
        timeout_seconds: Per-request timeout
        verify_ssl: Verify TLS certificates
    """

    base_url: str = ""
    token: Optional[str] = None
    timeout_seconds: float = 30.0
    verify_ssl: bool = True

    @classmethod
    def from_toml_dict(
        cls,
        data: Dict[str, Any],
        *,
        base: Optional["ConnectionSettings"] = None,
        warnings: Optional[List[str]] = None,
    ) -> "ConnectionSettings":
        return _merge(base or cls(), data, source="connection", warnings=warnings)


@dataclass
class RetrySettings:
    """Retry policy configuration. Delays are milliseconds."""

    enabled: bool = True
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    exponential: bool = True

    @classmethod
    def from_toml_dict(
        cls,
        data: Dict[str, Any],
        *,
        base: Optional["RetrySettings"] = None,
        warnings: Optional[List[str]] = None,
    ) -> "RetrySettings":
        return _merge(
            base or cls(),
            data,
            source="retry",
            warnings=warnings,
            minimums={"max_retries": 0, "base_delay_ms": 0, "max_delay_ms": 0},
        )


@dataclass
class CircuitBreakerSettings:
    """Circuit breaker thresholds. ``reset_timeout_ms`` is milliseconds."""

    enabled: bool = True
    failure_threshold: int = 5
    reset_timeout_ms: int = 60000
    success_threshold: int = 2

    @classmethod
    def from_toml_dict(
        cls,
        data: Dict[str, Any],
        *,
        base: Optional["CircuitBreakerSettings"] = None,
        warnings: Optional[List[str]] = None,
    ) -> "CircuitBreakerSettings":
        return _merge(
            base or cls(),
            data,
            source="circuit_breaker",
            warnings=warnings,
            minimums={"failure_threshold": 1, "reset_timeout_ms": 0, "success_threshold": 1},
        )


@dataclass
class PaginationSettings:
    """Page sizes and auto-fetch behaviour.

    Attributes:
        default_page_size: Page size when a tool call gives none
        max_page_size: Upper clamp for any page size
        auto_fetch_all: Fetch every page when a tool call does not say
        default_max_pages: Page bound for fetch-all (None = unbounded)
    """

    default_page_size: int = 100
    max_page_size: int = 1000
    auto_fetch_all: bool = False
    default_max_pages: Optional[int] = None

    @classmethod
    def from_toml_dict(
        cls,
        data: Dict[str, Any],
        *,
        base: Optional["PaginationSettings"] = None,
        warnings: Optional[List[str]] = None,
    ) -> "PaginationSettings":
        return _merge(
            base or cls(),
            data,
            source="pagination",
            warnings=warnings,
            minimums={"default_page_size": 1, "max_page_size": 1, "default_max_pages": 1},
        )


@dataclass
class HierarchySettings:
    """Project tree traversal defaults."""

    root_id: str = "_Root"
    default_max_depth: int = 5

    @classmethod
    def from_toml_dict(
        cls,
        data: Dict[str, Any],
        *,
        base: Optional["HierarchySettings"] = None,
        warnings: Optional[List[str]] = None,
    ) -> "HierarchySettings":
        return _merge(
            base or cls(),
            data,
            source="hierarchy",
            warnings=warnings,
            minimums={"default_max_depth": 0},
        )
