"""Spread Journal Server - Main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
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

from .config import JournalConfig, load_config
from .engine import JournalEngine
from .storage import write_json_atomically
from .tools import execute_tool, make_tools

logger = logging.getLogger(__name__)

REPOSITORY_FILES = ("spreads.json", "tasks.json", "notes.json", "events.json")


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout carries the MCP stdio protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def create_server(config: JournalConfig) -> "Server":
    """Create and configure the MCP server.

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install spread-journal[mcp]"
        )

    server = Server("spread-journal")
    engine = JournalEngine(config)
    tool_defs = make_tools(engine)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
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
        result = await execute_tool(engine, name, arguments)
        if not result.get("success"):
            logger.warning("Tool %s failed: %s", name, result.get("error"))
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: JournalConfig) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install spread-journal[mcp]"
        )

    server = create_server(config)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def init_data_dir(config: JournalConfig) -> list[Path]:
    """Create the data directory and any missing repository files.

    Returns:
        Paths of the files created
    """
    data_path = config.get_data_path()
    data_path.mkdir(parents=True, exist_ok=True)

    created = []
    for name in REPOSITORY_FILES:
        path = data_path / name
        if not path.exists():
            write_json_atomically(path, [])
            created.append(path)
    return created


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Spread Journal Server - spreads, tasks, notes, and events over MCP"
    )
    parser.add_argument(
        "--data-dir",
        "-d",
        type=Path,
        default=Path.cwd(),
        help="Journal root directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in journal root)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the journal data files and exit",
    )

    args = parser.parse_args()
    root = args.data_dir.resolve()

    try:
        config = load_config(root, args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.log_level)

    if args.init:
        created = init_data_dir(config)
        print(f"Initialized journal data in {config.get_data_path()}")
        for path in created:
            print(f"  - {path.name}")
        return

    if not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install spread-journal[mcp]", file=sys.stderr)
        print("Note: MCP requires Python 3.10+", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(config))


if __name__ == "__main__":  # pragma: no cover
    main()
