"""MCP tools listing TeamCity collections (projects, builds, agents, ...).

Every tool accepts filter criteria plus pagination intent: ``page`` and
``page_size`` for one page, or ``all=true`` with an optional ``max_pages``
bound to fetch every page.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from teamcity_mcp.config import ServerConfig
from teamcity_mcp.core.naming import canonical_tool
from teamcity_mcp.core.responses import success_response
from teamcity_mcp.services import TeamCityServices
from teamcity_mcp.tools.common import CollectionArgs, run_tool

logger = logging.getLogger(__name__)


async def list_collection(
    services: TeamCityServices,
    resource: str,
    arguments: Dict[str, Any],
) -> dict:
    """Validate arguments and return one page or every page of ``resource``."""
    # locals() of the tool function also carries closure cells such as ``services``
    args = CollectionArgs(
        **{
            k: v
            for k, v in arguments.items()
            if v is not None and k in CollectionArgs.model_fields
        }
    )
    engine = services.engine(resource)
    criteria = args.to_criteria()

    fetch_all = args.all
    if fetch_all is None:
        fetch_all = services.config.pagination.auto_fetch_all and args.page == 1

    if fetch_all:
        items = await engine.fetch_all(criteria, args.page_size, args.max_pages)
        max_pages = args.max_pages or engine.default_max_pages
        return asdict(
            success_response(
                items=items,
                count=len(items),
                pagination={
                    "all": True,
                    "returned": len(items),
                    "page_size": engine.clamp_page_size(args.page_size),
                    "max_pages": max_pages,
                },
            )
        )

    result = await engine.fetch_single_page(criteria, args.page, args.page_size)
    return asdict(
        success_response(
            items=list(result.items),
            count=len(result.items),
            pagination=result.pagination_meta(),
        )
    )


def register_collection_tools(mcp: FastMCP, config: ServerConfig, services: TeamCityServices) -> None:
    """Register collection listing tools.

    Args:
        mcp: FastMCP server instance
        config: Server configuration
        services: Shared client, invoker and engines
    """

    @canonical_tool(
        mcp,
        canonical_name="project-list",
        config=config,
        description="""
        List TeamCity projects.

        Args:
            locator: Raw TeamCity locator; its clauses win over the filters below
            name: Project name (wildcards allowed)
            archived: Only archived (true) or active (false) projects
            parent_project_id: Only direct children of this project
            page: 1-based page number (default 1)
            page_size: Items per page (clamped to the configured maximum)
            all: Fetch every page instead of one
            max_pages: Upper bound on pages when all=true

        Returns:
            JSON object with items, count and pagination metadata
        """,
    )
    async def project_list(
        locator: Optional[str] = None,
        name: Optional[str] = None,
        archived: Optional[bool] = None,
        parent_project_id: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all: Optional[bool] = None,
        max_pages: Optional[int] = None,
    ) -> dict:
        """List projects."""
        arguments = dict(locals())
        return await run_tool(lambda: list_collection(services, "projects", arguments))

    @canonical_tool(
        mcp,
        canonical_name="build-list",
        config=config,
        description="""
        List TeamCity builds with filters.

        WHEN TO USE:
        - Finding recent failures for a build configuration
        - Listing builds of a branch within a date range

        Args:
            locator: Raw TeamCity locator; its clauses win over the filters below
            project_id: Builds of this project
            build_type_id: Builds of this build configuration
            status: SUCCESS, FAILURE, ERROR or UNKNOWN
            branch: Branch name, pattern or selector (e.g. "default:any")
            tag: Build tag
            since_date: ISO-8601 or YYYY-MM-DD lower bound
            until_date: ISO-8601 or YYYY-MM-DD upper bound
            running: Only running (true) or finished (false) builds
            canceled: Only canceled (true) or non-canceled (false) builds
            page, page_size, all, max_pages: Pagination intent

        Returns:
            JSON object with items, count and pagination metadata
        """,
    )
    async def build_list(
        locator: Optional[str] = None,
        project_id: Optional[str] = None,
        build_type_id: Optional[str] = None,
        status: Optional[str] = None,
        branch: Optional[str] = None,
        tag: Optional[str] = None,
        since_date: Optional[str] = None,
        until_date: Optional[str] = None,
        running: Optional[bool] = None,
        canceled: Optional[bool] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all: Optional[bool] = None,
        max_pages: Optional[int] = None,
    ) -> dict:
        """List builds."""
        arguments = dict(locals())
        return await run_tool(lambda: list_collection(services, "builds", arguments))

    @canonical_tool(
        mcp,
        canonical_name="build-type-list",
        config=config,
        description="""
        List TeamCity build configurations.

        Args:
            locator: Raw TeamCity locator
            project_id: Build configurations of this project
            name: Build configuration name
            page, page_size, all, max_pages: Pagination intent
        """,
    )
    async def build_type_list(
        locator: Optional[str] = None,
        project_id: Optional[str] = None,
        name: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all: Optional[bool] = None,
        max_pages: Optional[int] = None,
    ) -> dict:
        """List build configurations."""
        arguments = dict(locals())
        return await run_tool(lambda: list_collection(services, "build_types", arguments))

    @canonical_tool(
        mcp,
        canonical_name="agent-list",
        config=config,
        description="""
        List TeamCity build agents.

        Args:
            locator: Raw TeamCity locator (e.g. "connected:true,authorized:true")
            name: Agent name
            page, page_size, all, max_pages: Pagination intent
        """,
    )
    async def agent_list(
        locator: Optional[str] = None,
        name: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all: Optional[bool] = None,
        max_pages: Optional[int] = None,
    ) -> dict:
        """List agents."""
        arguments = dict(locals())
        return await run_tool(lambda: list_collection(services, "agents", arguments))

    @canonical_tool(
        mcp,
        canonical_name="queued-build-list",
        config=config,
        description="""
        List builds waiting in the TeamCity queue.

        Args:
            locator: Raw TeamCity locator
            project_id: Queued builds of this project
            build_type_id: Queued builds of this build configuration
            page, page_size, all, max_pages: Pagination intent
        """,
    )
    async def queued_build_list(
        locator: Optional[str] = None,
        project_id: Optional[str] = None,
        build_type_id: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        all: Optional[bool] = None,
        max_pages: Optional[int] = None,
    ) -> dict:
        """List queued builds."""
        arguments = dict(locals())
        return await run_tool(lambda: list_collection(services, "queued_builds", arguments))
