"""Offset-based pagination over TeamCity collections.

TeamCity collection responses look like::

    {"count": 2, "project": [...], "nextHref": "/app/rest/projects?locator=count:2,start:2"}

The list key differs per resource, the envelope does not. ``parse_page``
turns a payload into an immutable ``Page``; ``PaginationEngine`` issues page
requests through a ``TransportInvoker`` one at a time and stops on a short
page, a missing continuation, or the page bound. ``count`` is treated as
advisory and never ends the loop.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from teamcity_mcp.core.client import COLLECTIONS
from teamcity_mcp.core.errors.locator import PageParseError
from teamcity_mcp.core.locator import FilterCriteria, build_locator, parse_page_markers, with_page_markers
from teamcity_mcp.core.observability import audit_log, get_metrics
from teamcity_mcp.core.resilience.invoker import TransportInvoker

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000

Criteria = Union[FilterCriteria, str, None]
Continuation = Union[int, str, None]


@dataclass(frozen=True)
class PageRequest:
    """One page request: offset/limit plus the fully assembled locator."""

    offset: int
    limit: int
    locator: str


@dataclass(frozen=True)
class Page:
    """One parsed page. Items are a tuple and never mutated after parsing.

    ``continuation`` is the next offset when ``nextHref`` carries a
    ``start:`` marker, otherwise the raw ``nextHref``; None on the last page.
    """

    items: Tuple[Any, ...]
    total_count: Optional[int] = None
    continuation: Continuation = None
    prev_href: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.continuation is not None


@dataclass(frozen=True)
class PaginatedResult:
    """Single-page result with explicit navigation flags."""

    items: Tuple[Any, ...]
    page: int
    page_size: int
    offset: int
    has_more: bool
    has_previous: bool
    total_count: Optional[int] = None

    def pagination_meta(self) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            "page": self.page,
            "page_size": self.page_size,
            "offset": self.offset,
            "returned": len(self.items),
            "has_more": self.has_more,
            "has_previous": self.has_previous,
        }
        if self.total_count is not None:
            meta["total_count"] = self.total_count
        return meta


def parse_continuation(next_href: Optional[str]) -> Continuation:
    """Convert ``nextHref`` into an offset when possible, else keep it opaque."""
    if not next_href:
        return None
    start, _ = parse_page_markers(next_href)
    return start if start is not None else next_href


def parse_page(payload: Any, collection_key: str) -> Page:
    """Parse a collection envelope into a Page.

    Args:
        payload: Decoded JSON response
        collection_key: Name of the item list (``project``, ``build``, ...)

    Returns:
        Page; a missing list key yields an empty page, and a single object
        under the key yields a one-item page.

    Raises:
        PageParseError: The payload is not a JSON object, or the list key
            holds something other than a list or object.
    """
    if not isinstance(payload, Mapping):
        raise PageParseError(
            f"Expected a JSON object for '{collection_key}' collection, got {type(payload).__name__}",
            collection_key=collection_key,
            payload_type=type(payload).__name__,
        )

    raw_items = payload.get(collection_key)
    if raw_items is None:
        items: Tuple[Any, ...] = ()
    elif isinstance(raw_items, list):
        items = tuple(raw_items)
    elif isinstance(raw_items, Mapping):
        items = (raw_items,)
    else:
        raise PageParseError(
            f"Expected a list under '{collection_key}', got {type(raw_items).__name__}",
            collection_key=collection_key,
            payload_type=type(raw_items).__name__,
        )

    count = payload.get("count")
    total_count = count if isinstance(count, int) and not isinstance(count, bool) else None

    next_href = payload.get("nextHref")
    prev_href = payload.get("prevHref")
    return Page(
        items=items,
        total_count=total_count,
        continuation=parse_continuation(next_href if isinstance(next_href, str) else None),
        prev_href=prev_href if isinstance(prev_href, str) else None,
    )


PageFetcher = Callable[[PageRequest], Awaitable[Any]]


class PaginationEngine:
    """Fetches one page or walks all pages of a single collection.

    Retry and breaker handling are entirely delegated to the invoker, per
    page request. Pages are fetched sequentially; offsets are not safe to
    parallelize when the collection shifts between requests.
    """

    def __init__(
        self,
        invoker: TransportInvoker,
        fetch: PageFetcher,
        collection_key: str,
        *,
        name: str = "collection",
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        default_max_pages: Optional[int] = None,
    ):
        """Initialize the engine.

        Args:
            invoker: Transport invoker shared with other engines
            fetch: Coroutine performing one raw page request
            collection_key: List key inside the response envelope
            name: Label for logs and audit events
            default_page_size: Page size when the caller gives none
            max_page_size: Upper clamp for page sizes
            default_max_pages: Page bound for ``fetch_all`` (None = unbounded)
        """
        self.invoker = invoker
        self._fetch = fetch
        self.collection_key = collection_key
        self.name = name
        self.max_page_size = max(1, max_page_size)
        self.default_page_size = max(1, min(default_page_size, self.max_page_size))
        self.default_max_pages = default_max_pages

    @classmethod
    def for_collection(
        cls,
        client: Any,
        invoker: TransportInvoker,
        resource: str,
        settings: Any = None,
        *,
        fields: Optional[str] = None,
    ) -> "PaginationEngine":
        """Build an engine for one of ``TeamCityClient``'s collections."""
        spec = COLLECTIONS[resource]

        async def fetch(request: PageRequest) -> Any:
            return await client.list_collection(resource, request.locator, fields)

        kwargs: Dict[str, Any] = {}
        if settings is not None:
            kwargs = {
                "default_page_size": settings.default_page_size,
                "max_page_size": settings.max_page_size,
                "default_max_pages": settings.default_max_pages,
            }
        return cls(invoker, fetch, spec.key, name=resource, **kwargs)

    def clamp_page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            return self.default_page_size
        return max(1, min(int(page_size), self.max_page_size))

    def build_request(self, criteria: Criteria, offset: int, limit: int) -> PageRequest:
        base = build_locator(criteria) if isinstance(criteria, FilterCriteria) else (criteria or "")
        offset = max(0, offset)
        limit = self.clamp_page_size(limit)
        return PageRequest(offset=offset, limit=limit, locator=with_page_markers(base, offset, limit))

    async def fetch_page(self, criteria: Criteria, offset: int = 0, limit: Optional[int] = None) -> Page:
        """Issue exactly one invoker-wrapped page request and parse it."""
        request = self.build_request(criteria, offset, self.clamp_page_size(limit))
        payload = await self.invoker.invoke(
            lambda: self._fetch(request),
            operation_name=f"{self.name}.page",
        )
        page = parse_page(payload, self.collection_key)

        audit_log(
            "page_fetch",
            collection=self.name,
            offset=request.offset,
            limit=request.limit,
            returned=len(page.items),
            has_more=page.has_more,
        )
        get_metrics().counter("pagination.pages", labels={"collection": self.name})
        return page

    async def iter_pages(
        self,
        criteria: Criteria,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Page]:
        """Yield pages until a short page, no continuation, or ``max_pages``.

        The offset advances by the number of items actually returned.
        """
        size = self.clamp_page_size(page_size)
        bound = max_pages if max_pages is not None else self.default_max_pages
        offset = 0
        fetched = 0

        while bound is None or fetched < bound:
            page = await self.fetch_page(criteria, offset, size)
            fetched += 1
            yield page

            received = len(page.items)
            if received < size or page.continuation is None:
                return
            offset += received

        logger.info("%s: stopped at page bound %d", self.name, bound)

    async def iter_items(
        self,
        criteria: Criteria,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> AsyncIterator[Any]:
        """Yield items one by one across pages, fetching lazily."""
        async for page in self.iter_pages(criteria, page_size, max_pages):
            for item in page.items:
                yield item

    async def fetch_all(
        self,
        criteria: Criteria,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> List[Any]:
        """Fetch every page (up to ``max_pages``) and concatenate the items.

        Items keep the order received and are not de-duplicated.
        """
        size = self.clamp_page_size(page_size)
        logger.debug("%s: fetching all pages (page_size=%d, max_pages=%s)", self.name, size, max_pages)

        items: List[Any] = []
        pages = 0
        async for page in self.iter_pages(criteria, size, max_pages):
            pages += 1
            items.extend(page.items)
            logger.debug("%s: page %d returned %d items", self.name, pages, len(page.items))

        logger.info("%s: fetched %d items in %d pages", self.name, len(items), pages)
        return items

    async def fetch_single_page(
        self,
        criteria: Criteria,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PaginatedResult:
        """Fetch one 1-based page with has_more/has_previous flags."""
        page = max(1, page)
        size = self.clamp_page_size(page_size)
        offset = (page - 1) * size
        result = await self.fetch_page(criteria, offset, size)
        return PaginatedResult(
            items=result.items,
            page=page,
            page_size=size,
            offset=offset,
            has_more=result.has_more,
            has_previous=offset > 0 or result.prev_href is not None,
            total_count=result.total_count,
        )
