"""Agent framework integrations.

Available integrations:
- dbrelay.integrations.mcp - MCP (Model Context Protocol) server
"""
