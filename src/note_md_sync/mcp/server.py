"""MCP Server for note/Markdown sync using stdio transport.

This module implements the Model Context Protocol server that enables
AI agents to inspect and drive the sync between a note library and
Markdown files via standardized tools.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config import CONFLICT_STRATEGIES
from ..config_loader import ensure_config
from ..core.async_utils import init_semaphore
from ..logger import setup_logging
from ..sync import SyncOptions, format_sync_report
from ..version import check_version_consistency
from .lifespan import (
    AppContext,
    build_app_context,
    load_server_config,
    server_lifespan,
)
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("note-md-sync")

# Global application context (initialized in lifespan)
_app_context: AppContext | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: AppContext, args: dict) -> types.CallToolResult:
    """Handle ping tool -- report library and sync state."""
    count = len(ctx.status.sync_note_ids())
    state = "running" if ctx.engine.running else "idle"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"Note MD Sync server {__version__} is up. "
                    f"Library: {ctx.config.library_path}, "
                    f"{count} notes under sync, sync {state}."
                ),
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Note MD Sync server connectivity and report sync state",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> AppContext:
    """Get the global AppContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _app_context is None:
        raise RuntimeError(
            "AppContext not initialized. Server lifespan not started."
        )
    return _app_context


def set_context(ctx: AppContext | None) -> None:
    """Set the global AppContext instance, or None to clear it."""
    global _app_context
    _app_context = ctx


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear it."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools.

    Returns all registered (and permitted) tools from the ToolRegistry.
    """
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the ToolRegistry, filtered by a permissions file if given."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), builds the
    sync engine via the lifespan manager, and starts the server with
    stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override
            (library_path, state_dir, sync_interval_seconds,
            conflict_strategy, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    # Version check (non-blocking warning for stale installs)
    is_consistent, message = check_version_consistency()
    if not is_consistent:
        logger.warning(message)
        sys.stderr.write(f"Warning: {message}\n")
    else:
        logger.info(message)

    set_registry(build_registry(overrides.get("permissions_file")))

    # The context is installed here rather than in the lifespan so that
    # running this file as __main__ does not set it on a second copy of
    # the module.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_context(ctx)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="note-md-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


async def sync_once(config_overrides: dict | None = None) -> int:
    """Run one manual sync without starting the MCP server.

    Returns:
        Process exit code: 0 on success, 1 if the run failed.
    """
    overrides = config_overrides or {}
    setup_logging(
        mode="cli",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )
    try:
        config = load_server_config(overrides)
        ctx = build_app_context(config)
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1

    init_semaphore(config.max_parallel_reads)
    report = await ctx.engine.run_sync(
        options=SyncOptions(
            quiet=False, skip_active_editors=False, reason="cli"
        )
    )
    if report is None:
        print("A sync run is already in progress.", file=sys.stderr)
        return 1
    print(format_sync_report(report))
    return 0 if report.success else 1


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Note MD Sync - keep notes and Markdown files in sync (MCP server)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or config.yml)
  note-md-sync

  # Point at a note library
  note-md-sync --library ~/notes/library.json

  # Sync every 30 seconds, keep the note on conflicts
  note-md-sync --interval 30 --conflict-strategy note-wins

  # Run one sync and exit
  note-md-sync --sync-once

  # Create .note_sync/config.yml with commented defaults
  note-md-sync --init-config

  # Restrict tools by permissions
  note-md-sync --permissions-file /etc/note-md-sync/read-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--library",
        help="Note library JSON file (takes precedence over NOTE_SYNC_LIBRARY env var and config files)",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory holding sync_status.json (takes precedence over NOTE_SYNC_STATE_DIR)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        help="Auto-sync period in seconds; 0 disables auto-sync",
    )
    parser.add_argument(
        "--conflict-strategy",
        choices=CONFLICT_STRATEGIES,
        help="How notes changed on both sides are handled",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: LOG_FILE env var or /tmp/note-md-sync.log)",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (SYNC_VIEW, SYNC_RUN, SYNC_ADMIN), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--sync-once",
        action="store_true",
        help="Run one sync, print the report and exit",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config.yml (if none exists) and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"note-md-sync version {__version__}",
    )

    args = parser.parse_args()

    # Build config overrides dict from CLI args
    config_overrides: dict = {}
    if args.library:
        config_overrides["library_path"] = args.library
    if args.state_dir:
        config_overrides["state_dir"] = args.state_dir
    if args.interval is not None:
        config_overrides["sync_interval_seconds"] = args.interval
    if args.conflict_strategy:
        config_overrides["conflict_strategy"] = args.conflict_strategy
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if args.init_config:
        print(f"Config file: {ensure_config()}", file=sys.stderr)
        sys.exit(0)

    if args.sync_once:
        sys.exit(asyncio.run(sync_once(config_overrides)))

    print(
        f"Config overrides from CLI: {', '.join(config_overrides)}",
        file=sys.stderr,
    )

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
