from teamcity_mcp.cli import cli

cli()
