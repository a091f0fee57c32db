"""MCP tool registration for teamcity-mcp."""

from teamcity_mcp.tools.collections import register_collection_tools
from teamcity_mcp.tools.navigation import register_navigation_tools
from teamcity_mcp.tools.status import register_status_tools

__all__ = [
    "register_collection_tools",
    "register_navigation_tools",
    "register_status_tools",
]
