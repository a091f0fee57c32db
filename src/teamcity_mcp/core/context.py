"""Request-scoped context for correlation ids.

Tool handlers run inside a ``request_context`` so that audit events and
response metadata emitted anywhere below them share one correlation id.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_client_id: ContextVar[str] = ContextVar("client_id", default="anonymous")


def generate_correlation_id(prefix: str = "req") -> str:
    """Generate a new correlation id such as ``req_1f3a9c2b4d5e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> str:
    """Return the current correlation id, or an empty string outside a request."""
    return _correlation_id.get()


def get_client_id() -> str:
    return _client_id.get()


@contextmanager
def request_context(
    correlation_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Iterator[str]:
    """Bind a correlation id (and optionally a client id) for the enclosed block.

    Args:
        correlation_id: Explicit id to bind; generated when omitted.
        client_id: Optional client identifier.

    Yields:
        The bound correlation id.
    """
    cid = correlation_id or generate_correlation_id()
    cid_token = _correlation_id.set(cid)
    client_token = _client_id.set(client_id) if client_id else None
    try:
        yield cid
    finally:
        _correlation_id.reset(cid_token)
        if client_token is not None:
            _client_id.reset(client_token)
