"""Naming helpers for MCP tool registration."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from mcp.server.fastmcp import FastMCP

from teamcity_mcp.core.observability import mcp_tool

logger = logging.getLogger(__name__)


def canonical_tool(
    mcp: FastMCP,
    *,
    canonical_name: str,
    config: Optional[Any] = None,
    **tool_kwargs: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that registers a tool under its canonical name.

    When ``config`` lists the name in ``disabled_tools`` the function is
    returned undecorated and never registered.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if config is not None and not config.is_tool_enabled(canonical_name):
            logger.info("Tool '%s' disabled by configuration", canonical_name)
            return func
        return mcp.tool(name=canonical_name, **tool_kwargs)(
            mcp_tool(tool_name=canonical_name)(func)
        )

    return decorator
