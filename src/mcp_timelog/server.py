"""MCP Timelog Server - Main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import TimelogConfig, load_config
from .engine import TimelogEngine
from .errors import ImportFailedError, TimelogError
from .logging_config import configure_logging
from .models import ImportPolicy
from .tools import execute_tool, make_tools


def create_server(engine: TimelogEngine) -> "Server":
    """Create and configure the MCP server.

    Args:
        engine: Engine the tools operate on

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install mcp-timelog[mcp]"
        )

    server = Server("mcp-timelog")
    tool_defs = make_tools(engine)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""
        result = await execute_tool(engine, name, arguments)
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: TimelogConfig) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install mcp-timelog[mcp]"
        )

    engine = TimelogEngine(config)  # pragma: no cover
    server = create_server(engine)  # pragma: no cover

    try:  # pragma: no cover
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:  # pragma: no cover
        engine.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MCP Timelog - personal timestamped log with portable backups"
    )
    parser.add_argument(
        "--data-dir",
        "-d",
        type=Path,
        default=Path.cwd(),
        help="Root directory holding data/ and backups/ (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in data dir)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log progress to stderr",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the data and backup directories",
    )

    backup_group = parser.add_argument_group("backup", "Backup and maintenance")
    backup_group.add_argument(
        "--export",
        action="store_true",
        help="Export all entries to a new backup file",
    )
    backup_group.add_argument(
        "--import",
        dest="import_path",
        type=Path,
        metavar="FILE",
        help="Import a backup file (merge unless --overwrite)",
    )
    backup_group.add_argument(
        "--overwrite",
        action="store_true",
        help="With --import: delete all entries before importing",
    )
    backup_group.add_argument(
        "--list-backups",
        action="store_true",
        help="List backup files, newest first",
    )
    backup_group.add_argument(
        "--dedup",
        action="store_true",
        help="Remove duplicate entries",
    )
    return parser


def run_action(args: argparse.Namespace, config: TimelogConfig) -> bool:
    """Run the maintenance action selected on the command line.

    Returns:
        False if no action was requested (server mode)
    """
    if not (args.init or args.export or args.import_path or args.list_backups or args.dedup):
        return False

    engine = TimelogEngine(config)
    try:
        if args.init:
            config.get_backups_path().mkdir(parents=True, exist_ok=True)
            print(f"Initialized timelog in {config.project_root}")
            print(f"  - {config.data_dir}/")
            print(f"  - {config.backups_dir}/")

        if args.import_path:
            policy = ImportPolicy.OVERWRITE if args.overwrite else ImportPolicy.MERGE
            result = engine.import_backup(args.import_path, policy=policy)
            print(f"Imported {result.inserted_count} entries ({policy.value})")
            if result.skipped_count:
                print(f"  Skipped {result.skipped_count} unusable entries")
            if result.image_fallback_count:
                print(f"  {result.image_fallback_count} entries imported without their image")

        if args.dedup:
            removed = engine.remove_duplicates()
            print(f"Removed {removed} duplicate entries")

        if args.export:
            path = engine.export_backup()
            print(f"Backup written to {path}")

        if args.list_backups:
            backups = engine.list_backups()
            if not backups:
                print("No backups found.")
            for path in backups:
                print(f"  {path.name}")
    finally:
        engine.close()

    return True


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    project_root = args.data_dir.resolve()

    try:
        config = load_config(project_root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging("INFO" if args.verbose else config.log_level)

    try:
        if run_action(args, config):
            return
    except ImportFailedError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        print(f"{e.inserted_count} entries were inserted before the failure", file=sys.stderr)
        sys.exit(1)
    except TimelogError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Check for MCP before running in server mode
    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install mcp-timelog[mcp]", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(config))


if __name__ == "__main__":  # pragma: no cover
    main()
