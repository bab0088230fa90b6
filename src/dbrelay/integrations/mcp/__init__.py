"""MCP (Model Context Protocol) integration for DbRelay.

This module provides an MCP server that exposes the database, code generation
and verification operations as tools for AI agents.

Example:
    # Run the MCP server against a SQLite file
    python -m dbrelay.integrations.mcp.server --driver sqlite --database app.db

    # Or via entry point (after pip install), configured from DB_* variables
    dbrelay-mcp
"""

from dbrelay.integrations.mcp.server import create_server, mcp

__all__ = ["mcp", "create_server"]
