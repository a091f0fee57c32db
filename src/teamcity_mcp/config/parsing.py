"""Parsing and normalization helpers for configuration values.

Provides boolean, integer and list parsing used by other config
sub-modules. Invalid values never raise: they fall back to the current
value and produce a warning string for ``ServerConfig.startup_warnings``.
"""

import logging
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _parse_int(
    value: Any,
    default: Optional[int],
    *,
    source: str,
    minimum: Optional[int] = None,
) -> Tuple[Optional[int], Optional[str]]:
    """Parse an integer setting.

    Returns:
        Tuple of (value, warning). On failure the value is ``default`` and
        the warning names the offending source.
    """
    if isinstance(value, bool):
        return default, f"Ignoring {source}: expected an integer, got {value!r}"
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default, f"Ignoring {source}: expected an integer, got {value!r}"
    if minimum is not None and parsed < minimum:
        return default, f"Ignoring {source}: must be >= {minimum}, got {parsed}"
    return parsed, None


def _parse_float(value: Any, default: float, *, source: str) -> Tuple[float, Optional[str]]:
    try:
        return float(str(value).strip()), None
    except (TypeError, ValueError):
        return default, f"Ignoring {source}: expected a number, got {value!r}"


def _parse_list(value: Any) -> List[str]:
    """Accept a TOML list or a comma-separated string."""
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]
