"""FastMCP server assembly for teamcity-mcp."""

from __future__ import annotations

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from teamcity_mcp.config import ServerConfig, get_config
from teamcity_mcp.services import TeamCityServices, build_services
from teamcity_mcp.tools import (
    register_collection_tools,
    register_navigation_tools,
    register_status_tools,
)

logger = logging.getLogger(__name__)


def create_server(
    config: Optional[ServerConfig] = None,
    services: Optional[TeamCityServices] = None,
) -> FastMCP:
    """Create the MCP server with every enabled tool registered.

    Args:
        config: Server configuration (defaults to the global config)
        services: Prebuilt services (defaults to ``build_services(config)``)
    """
    config = config or get_config()
    services = services or build_services(config)

    mcp = FastMCP(config.server_name)
    register_collection_tools(mcp, config, services)
    register_navigation_tools(mcp, config, services)
    register_status_tools(mcp, config, services)

    logger.info(
        "Created %s %s for %s",
        config.server_name,
        config.server_version,
        config.connection.base_url or "<unconfigured>",
    )
    return mcp


def main() -> None:
    """Run the server over stdio."""
    config = get_config()
    config.setup_logging()
    create_server(config).run()


if __name__ == "__main__":
    main()
