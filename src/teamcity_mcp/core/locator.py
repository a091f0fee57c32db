"""TeamCity locator construction and normalization.

A locator is a comma-separated list of ``key:value`` clauses where a value
may group nested clauses in parentheses, e.g.
``buildType:(id:Proj_Build),branch:(refs/heads/main),count:100``.

Everything here is pure. Raw locator strings never raise: unbalanced
parentheses are tolerated and the worst case is a locator that round-trips
unchanged. Only typed ``FilterCriteria`` values are validated.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import unquote

from teamcity_mcp.core.errors.locator import LocatorValidationError

logger = logging.getLogger(__name__)

SEPARATOR = ","

# Branch selectors TeamCity accepts without grouping parentheses
PRESET_SELECTORS = frozenset(
    {
        "default:true",
        "default:false",
        "default:any",
        "unspecified:true",
        "unspecified:false",
        "unspecified:any",
        "branched:true",
        "branched:false",
        "branched:any",
    }
)
PRESET_PREFIXES = ("default:", "unspecified:", "branched:", "policy:")

# Keys whose values are re-wrapped when a raw locator is normalized
NORMALIZED_KEYS = frozenset({"branch"})

PAGE_MARKER_KEYS = frozenset({"count", "start"})

VALID_BUILD_STATUSES = frozenset({"SUCCESS", "FAILURE", "ERROR", "UNKNOWN"})

_WHITESPACE = re.compile(r"\s")
_TEAMCITY_DATE = re.compile(r"^\d{8}T\d{6}[+-]\d{4}$")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_START_MARKER = re.compile(r"(?<![A-Za-z])start:(\d+)")
_COUNT_MARKER = re.compile(r"(?<![A-Za-z])count:(\d+)")


def split_top_level(locator: Optional[str], separator: str = SEPARATOR) -> List[str]:
    """Split a locator on ``separator`` only outside parenthesized groups.

    Depth never goes negative: a stray ``)`` is kept as a literal character,
    and a trailing unclosed group is returned verbatim. Empty pieces are
    dropped and each piece is stripped.

    Args:
        locator: Locator string (None or empty yields an empty list)
        separator: Top-level separator character

    Returns:
        Top-level clauses in their original order

    Example:
        >>> split_top_level("branch:(a,b),status:X")
        ['branch:(a,b)', 'status:X']
    """
    if not locator:
        return []

    parts: List[str] = []
    current: List[str] = []
    depth = 0

    for char in locator:
        if char == separator and depth == 0:
            piece = "".join(current).strip()
            if piece:
                parts.append(piece)
            current = []
            continue

        if char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1

        current.append(char)

    piece = "".join(current).strip()
    if piece:
        parts.append(piece)

    return parts


def segment_key(segment: str) -> Optional[str]:
    """Return the lower-cased filter key of a clause, or None if it has none.

    ``"buildType:(id:X)"`` -> ``"buildtype"``; ``"(a,b)"`` and ``"123"`` -> None.
    """
    colon = segment.find(":")
    if colon <= 0:
        return None
    paren = segment.find("(")
    if 0 <= paren < colon:
        return None
    key = segment[:colon].strip()
    return key.lower() or None


def wrap_value(raw_value: str) -> str:
    """Wrap a filter value in a parenthesized group when TeamCity requires it.

    Left as-is: values already starting with ``(``, preset selectors such as
    ``default:any`` or ``policy:ALL_BRANCHES``, and wildcard patterns
    without a ``:``. Wrapped: values with whitespace or a top-level
    separator, and values with ``/`` or ``:``.
    """
    trimmed = raw_value.strip()
    if not trimmed:
        return trimmed

    if trimmed.startswith("("):
        return trimmed

    lower = trimmed.lower()
    if lower in PRESET_SELECTORS or lower.startswith(PRESET_PREFIXES):
        return trimmed

    if _WHITESPACE.search(trimmed) or SEPARATOR in trimmed:
        return f"({trimmed})"

    if "*" in trimmed and ":" not in trimmed:
        return trimmed

    if "/" in trimmed or ":" in trimmed:
        return f"({trimmed})"

    return trimmed


def normalize_segment(key: str, raw_value: str) -> str:
    """Build a ``key:value`` clause, wrapping the value when needed.

    Idempotent for already-grouped values:
    ``normalize_segment("branch", "(refs/heads/main)")`` is
    ``"branch:(refs/heads/main)"``.

    Returns:
        The clause, or an empty string when the value is blank.
    """
    value = wrap_value(raw_value)
    if not value:
        return ""
    return f"{key.strip()}:{value}"


def normalize_locator_segment(segment: str) -> str:
    """Normalize one raw clause, re-wrapping values of ``NORMALIZED_KEYS``."""
    trimmed = segment.strip()
    key = segment_key(trimmed)
    if key not in NORMALIZED_KEYS:
        return trimmed

    raw_value = trimmed[trimmed.find(":") + 1 :].strip()
    if not raw_value:
        return trimmed
    return normalize_segment(trimmed[: trimmed.find(":")], raw_value)


def normalize_locator(locator: Optional[str]) -> List[str]:
    """Split a raw locator and normalize each clause; blanks are dropped."""
    segments = (normalize_locator_segment(s) for s in split_top_level(locator))
    return [s for s in segments if s]


def has_segment(locator: Union[str, Iterable[str], None], key: str) -> bool:
    """Return True if ``locator`` (string or clause list) contains ``key``."""
    segments = split_top_level(locator) if isinstance(locator, str) or locator is None else locator
    wanted = key.lower()
    return any(segment_key(s) == wanted for s in segments)


def build_branch_segment(branch_input: str) -> str:
    """Normalize user branch input with or without the ``branch:`` prefix."""
    normalized = branch_input.strip()
    if normalized.lower().startswith("branch:"):
        normalized = normalized[len("branch:") :]
    return normalize_segment("branch", normalized)


def merge_segments(
    existing_locator: Optional[str],
    new_segments: Union[str, Iterable[str], None],
) -> str:
    """Append clauses whose keys are not already present.

    Key matching is case-insensitive. Existing clauses keep their order and
    win over new ones; a key never appears twice in the result. Clauses
    without a key are de-duplicated by exact text.

    Args:
        existing_locator: Locator to extend (may be empty)
        new_segments: Clauses to add, as a list or as a locator string

    Returns:
        The merged locator string
    """
    merged: List[str] = []
    seen_keys: set = set()
    seen_plain: set = set()

    def _add(segment: str) -> None:
        normalized = normalize_locator_segment(segment)
        if not normalized:
            return
        key = segment_key(normalized)
        if key is None:
            if normalized in seen_plain:
                return
            seen_plain.add(normalized)
        else:
            if key in seen_keys:
                return
            seen_keys.add(key)
        merged.append(normalized)

    for segment in split_top_level(existing_locator):
        _add(segment)

    if isinstance(new_segments, str):
        new_segments = [new_segments]
    for candidate in new_segments or ():
        for segment in split_top_level(candidate):
            _add(segment)

    return SEPARATOR.join(merged)


def with_page_markers(locator: Optional[str], offset: int, limit: int) -> str:
    """Replace any ``count``/``start`` clauses with the given page markers."""
    segments = [s for s in normalize_locator(locator) if segment_key(s) not in PAGE_MARKER_KEYS]
    segments.append(f"count:{limit}")
    segments.append(f"start:{offset}")
    return SEPARATOR.join(segments)


def parse_page_markers(text: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """Extract ``(start, count)`` from a locator or a URL-encoded ``nextHref``.

    Returns:
        Tuple of (start, count); either is None when absent
    """
    if not text:
        return None, None
    decoded = unquote(text)
    start_match = _START_MARKER.search(decoded)
    count_match = _COUNT_MARKER.search(decoded)
    start = int(start_match.group(1)) if start_match else None
    count = int(count_match.group(1)) if count_match else None
    return start, count


def _parse_date(value: str, field_name: str) -> datetime:
    text = value.strip()
    if _TEAMCITY_DATE.match(text):
        try:
            return datetime.strptime(text, "%Y%m%dT%H%M%S%z")
        except ValueError:
            pass
    if _DATE_ONLY.match(text):
        text = f"{text}T00:00:00+00:00"
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise LocatorValidationError(
            f"Invalid date format for {field_name}: {value}", field=field_name, value=value
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_teamcity_date(value: str, field_name: str = "date") -> str:
    """Convert ISO-8601 or ``YYYY-MM-DD`` to TeamCity's ``yyyyMMddTHHmmss+0000``."""
    parsed = _parse_date(value, field_name)
    return parsed.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S+0000")


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


@dataclass
class FilterCriteria:
    """Structured filters for collection queries.

    ``locator`` is a raw locator supplied by the caller; its clauses take
    precedence over structured fields with the same key.
    """

    locator: Optional[str] = None
    project_id: Optional[str] = None
    build_type_id: Optional[str] = None
    status: Optional[str] = None
    branch: Optional[str] = None
    tag: Optional[str] = None
    since_date: Optional[str] = None
    until_date: Optional[str] = None
    since_build: Optional[int] = None
    running: Optional[bool] = None
    canceled: Optional[bool] = None
    personal: Optional[bool] = None
    failed_to_start: Optional[bool] = None
    name: Optional[str] = None
    archived: Optional[bool] = None
    parent_project_id: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def to_segments(self) -> List[str]:
        """Render structured fields as clauses (raw ``locator`` excluded).

        Raises:
            LocatorValidationError: On an unknown status, an unparseable
                date, or ``since_date`` not before ``until_date``.
        """
        segments: List[str] = []

        if self.project_id:
            segments.append(f"project:(id:{self.project_id})")
        if self.build_type_id:
            segments.append(f"buildType:(id:{self.build_type_id})")
        if self.parent_project_id:
            segments.append(f"parentProject:(id:{self.parent_project_id})")
        if self.status:
            status = self.status.strip().upper()
            if status not in VALID_BUILD_STATUSES:
                raise LocatorValidationError(
                    f"Invalid status value: {self.status}", field="status", value=self.status
                )
            segments.append(f"status:{status}")
        if self.branch:
            segments.append(build_branch_segment(self.branch))
        if self.tag:
            segments.append(normalize_segment("tag", self.tag))
        if self.name:
            segments.append(normalize_segment("name", self.name))

        since = _parse_date(self.since_date, "since_date") if self.since_date else None
        until = _parse_date(self.until_date, "until_date") if self.until_date else None
        if since is not None and until is not None and since >= until:
            raise LocatorValidationError(
                "since_date must be before until_date",
                field="since_date",
                value=self.since_date,
            )
        if self.since_date:
            segments.append(f"sinceDate:{to_teamcity_date(self.since_date, 'since_date')}")
        if self.until_date:
            segments.append(f"untilDate:{to_teamcity_date(self.until_date, 'until_date')}")

        if self.since_build is not None:
            segments.append(f"sinceBuild:{self.since_build}")

        for key, flag in (
            ("running", self.running),
            ("canceled", self.canceled),
            ("personal", self.personal),
            ("failedToStart", self.failed_to_start),
            ("archived", self.archived),
        ):
            if flag is not None:
                segments.append(f"{key}:{_bool_text(flag)}")

        for key, value in self.extra.items():
            clause = normalize_segment(key, str(value))
            if clause:
                segments.append(clause)

        return segments


def build_locator(criteria: Union[FilterCriteria, Mapping[str, object], None]) -> str:
    """Assemble a locator from criteria: raw locator first, then structured fields.

    Args:
        criteria: FilterCriteria, a mapping of its field names, or None

    Returns:
        The merged locator (possibly empty)
    """
    if criteria is None:
        return ""
    if not isinstance(criteria, FilterCriteria):
        criteria = FilterCriteria(**dict(criteria))  # type: ignore[arg-type]
    locator = merge_segments(criteria.locator, criteria.to_segments())
    logger.debug("Built locator: %s", locator)
    return locator
