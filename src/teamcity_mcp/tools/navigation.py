"""MCP tools walking the TeamCity project hierarchy."""

from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from mcp.server.fastmcp import FastMCP

from teamcity_mcp.config import ServerConfig
from teamcity_mcp.core.naming import canonical_tool
from teamcity_mcp.core.responses import success_response
from teamcity_mcp.services import TeamCityServices
from teamcity_mcp.tools.common import TraversalArgs, run_tool


def register_navigation_tools(mcp: FastMCP, config: ServerConfig, services: TeamCityServices) -> None:
    """Register project hierarchy tools.

    Args:
        mcp: FastMCP server instance
        config: Server configuration
        services: Shared client, invoker and traversal
    """
    traversal = services.hierarchy

    @canonical_tool(
        mcp,
        canonical_name="project-ancestors",
        config=config,
        description="""
        List the ancestors of a project, root first, ending with the project.

        If a parent cannot be found the partial chain is returned and
        ``partial`` is true.

        Args:
            project_id: Project to start from
        """,
    )
    async def project_ancestors(project_id: str) -> dict:
        """Walk parent links up to the root project."""

        async def _run() -> dict:
            args = TraversalArgs(project_id=project_id)
            chain = await traversal.ancestors(args.project_id)
            return asdict(
                success_response(
                    project_id=args.project_id,
                    ancestors=[dict(record.to_dict(), level=i) for i, record in enumerate(chain)],
                    partial=not chain or chain[0].id != traversal.root_id,
                )
            )

        return await run_tool(_run)

    @canonical_tool(
        mcp,
        canonical_name="project-descendants",
        config=config,
        description="""
        List every project below a project, breadth-first, with levels.

        Projects reachable along several links are listed once.

        Args:
            project_id: Project to start from
            max_depth: Levels to expand (default from configuration)
        """,
    )
    async def project_descendants(project_id: str, max_depth: Optional[int] = None) -> dict:
        """Breadth-first descendant listing."""

        async def _run() -> dict:
            args = TraversalArgs(project_id=project_id, max_depth=max_depth)
            result = await traversal.descendants(args.project_id, args.max_depth)
            return asdict(
                success_response(
                    project_id=args.project_id,
                    descendants=[entry.to_dict() for entry in result.entries],
                    count=len(result.entries),
                    max_depth_reached=result.max_depth_reached,
                )
            )

        return await run_tool(_run)

    @canonical_tool(
        mcp,
        canonical_name="project-hierarchy",
        config=config,
        description="""
        Build the project tree below a project.

        Fails with CIRCULAR_DEPENDENCY if a project is its own ancestor.

        Args:
            project_id: Root of the tree (default: the root project)
            max_depth: Levels to expand (default from configuration)
        """,
    )
    async def project_hierarchy(project_id: Optional[str] = None, max_depth: Optional[int] = None) -> dict:
        """Build a project subtree."""

        async def _run() -> dict:
            args = TraversalArgs(project_id=project_id or traversal.root_id, max_depth=max_depth)
            tree = await traversal.subtree(args.project_id, args.max_depth)
            return asdict(
                success_response(
                    hierarchy=tree.to_dict(),
                    max_depth_reached=tree.max_depth_reached(),
                )
            )

        return await run_tool(_run)
