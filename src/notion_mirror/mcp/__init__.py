"""MCP server exposing the vault mirror as tools."""
