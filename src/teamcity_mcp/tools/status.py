"""MCP tool reporting circuit breaker state and effective resilience settings."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP

from teamcity_mcp.config import ServerConfig
from teamcity_mcp.core.naming import canonical_tool
from teamcity_mcp.core.responses import success_response
from teamcity_mcp.services import TeamCityServices


def resilience_status(services: TeamCityServices) -> Dict[str, Any]:
    breaker = services.breaker
    policy = services.invoker.retry_policy
    return {
        "circuit_breaker": breaker.stats().to_dict() if breaker is not None else {"enabled": False},
        "retry": {
            "enabled": policy.enabled,
            "max_retries": policy.max_retries,
            "base_delay_ms": policy.base_delay_ms,
            "max_delay_ms": policy.max_delay_ms,
            "exponential": policy.exponential,
        },
        "pagination": asdict(services.config.pagination),
    }


def register_status_tools(mcp: FastMCP, config: ServerConfig, services: TeamCityServices) -> None:
    """Register the resilience status tool."""

    @canonical_tool(
        mcp,
        canonical_name="resilience-status",
        config=config,
        description="""
        Report circuit breaker state and the effective retry/pagination settings.

        WHEN TO USE:
        - A call failed with CIRCUIT_OPEN and you want to know when to retry
        """,
    )
    def resilience_status_tool() -> dict:
        """Return breaker stats and retry settings."""
        return asdict(
            success_response(
                resilience_status(services),
                warnings=config.startup_warnings or None,
            )
        )
