"""MCP server exposing note/Markdown sync to AI agents over stdio."""
