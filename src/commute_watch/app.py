"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP(
    "Commute Watch",
    instructions=(
        "Stockholm-area commute planning - station lookup, trip planning with live "
        "delays, and delay compensation checks"
    ),
)
