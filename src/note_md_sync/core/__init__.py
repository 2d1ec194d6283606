"""Core async helpers shared by the sync engine and the MCP server."""

from .async_utils import gather_limited, run_sync, run_sync_limited

__all__ = ["gather_limited", "run_sync", "run_sync_limited"]
