"""MCP tool decorator with observability.

Provides @mcp_tool, which adds correlation ids, logging, metrics and audit
entries around every tool handler.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar

from teamcity_mcp.core.context import (
    generate_correlation_id,
    get_correlation_id,
    request_context,
)
from teamcity_mcp.core.observability.audit import _audit
from teamcity_mcp.core.observability.metrics import _metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _result_succeeded(result: Any) -> bool:
    """Tool handlers return response dicts; a ``success: False`` dict is an error."""
    if isinstance(result, dict) and "success" in result:
        return bool(result["success"])
    return True


def mcp_tool(
    tool_name: Optional[str] = None, emit_metrics: bool = True, audit: bool = True
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for MCP tool handlers with observability.

    Automatically:
    - Binds a correlation id for the duration of the call
    - Emits latency and status metrics
    - Creates audit log entries

    Args:
        tool_name: Override tool name (defaults to function name)
        emit_metrics: Whether to emit metrics
        audit: Whether to create audit log entries
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = tool_name or func.__name__

        def _finish(corr_id: str, start: float, success: bool, error_msg: Optional[str]) -> None:
            duration_ms = (time.perf_counter() - start) * 1000
            if emit_metrics:
                labels = {"tool": name, "status": "success" if success else "error"}
                _metrics.counter("tool.invocations", labels=labels)
                _metrics.timer("tool.latency", duration_ms, labels={"tool": name})
            if audit:
                _audit.tool_invocation(
                    tool_name=name,
                    success=success,
                    duration_ms=round(duration_ms, 2),
                    error=error_msg,
                    correlation_id=corr_id,
                )

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                corr_id = get_correlation_id() or generate_correlation_id(prefix="tool")
                with request_context(correlation_id=corr_id):
                    start = time.perf_counter()
                    success = True
                    error_msg = None
                    try:
                        result = await func(*args, **kwargs)  # type: ignore[misc]
                        success = _result_succeeded(result)
                        return result
                    except Exception as e:
                        success = False
                        error_msg = str(e)
                        logger.debug("Tool %s raised %s", name, type(e).__name__)
                        raise
                    finally:
                        _finish(corr_id, start, success, error_msg)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            corr_id = get_correlation_id() or generate_correlation_id(prefix="tool")
            with request_context(correlation_id=corr_id):
                start = time.perf_counter()
                success = True
                error_msg = None
                try:
                    result = func(*args, **kwargs)
                    success = _result_succeeded(result)
                    return result
                except Exception as e:
                    success = False
                    error_msg = str(e)
                    raise
                finally:
                    _finish(corr_id, start, success, error_msg)

        return sync_wrapper

    return decorator
