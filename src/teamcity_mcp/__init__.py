"""teamcity-mcp: resilient TeamCity access for MCP tool calls."""

from teamcity_mcp.config import ServerConfig, get_config

__all__ = ["ServerConfig", "get_config"]
