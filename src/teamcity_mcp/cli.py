"""Command line entry point for teamcity-mcp.

Commands print a JSON response envelope on stdout, matching what the MCP
tools return.
"""

import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any, Dict, Optional

import click

from teamcity_mcp.config import ServerConfig, set_config
from teamcity_mcp.core.errors import error_to_response
from teamcity_mcp.core.responses import success_response
from teamcity_mcp.services import build_services


def _emit(payload: Dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _load(ctx: click.Context) -> ServerConfig:
    config = ServerConfig.from_env(ctx.obj.get("config_file"))
    if ctx.obj.get("log_level"):
        config.log_level = ctx.obj["log_level"].upper()
    set_config(config)
    config.setup_logging()
    return config


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    envvar="TEAMCITY_MCP_CONFIG_FILE",
    help="TOML configuration file.",
)
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str]) -> None:
    """TeamCity MCP server."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["log_level"] = log_level


@cli.command("serve")
@click.pass_context
def serve_cmd(ctx: click.Context) -> None:
    """Run the MCP server over stdio."""
    from teamcity_mcp.server import create_server

    config = _load(ctx)
    create_server(config).run()


@cli.command("config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Show the effective configuration (token masked) and warnings."""
    config = _load(ctx)
    _emit(
        asdict(
            success_response(
                config=config.to_public_dict(),
                warnings=config.startup_warnings or None,
            )
        )
    )


@cli.command("tree")
@click.argument("project_id", required=False)
@click.option("--max-depth", type=int, default=None, help="Levels to expand.")
@click.pass_context
def tree_cmd(ctx: click.Context, project_id: Optional[str], max_depth: Optional[int]) -> None:
    """Print the project tree below PROJECT_ID (default: the root project)."""
    config = _load(ctx)

    async def _run() -> Dict[str, Any]:
        services = build_services(config)
        try:
            node = await services.hierarchy.subtree(
                project_id or services.hierarchy.root_id, max_depth
            )
        finally:
            await services.aclose()
        return asdict(
            success_response(hierarchy=node.to_dict(), max_depth_reached=node.max_depth_reached())
        )

    try:
        payload = asyncio.run(_run())
    except Exception as exc:
        response = error_to_response(exc)
        if response is None:
            raise
        _emit(response)
        sys.exit(1)
    _emit(payload)


if __name__ == "__main__":
    cli()
