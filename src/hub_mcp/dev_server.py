# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Development server module for testing with 'mcp dev' and 'fastmcp run'.

Exposes the FastMCP server instance as a module-level global for MCP
development tools that discover a server object at import time.

Usage:
    # With mcp dev (MCP Inspector) - run from repository root
    mcp dev src/hub_mcp/dev_server.py:mcp

    # With fastmcp run - run from repository root
    fastmcp run src/hub_mcp/dev_server.py:mcp

Note:
    The scheduled refresh thread is not started here; the schema loads on the
    first tool call. For production use, run the server via: python -m hub_mcp
"""

from hub_mcp.mcp_server import HubMCPServer

_server = HubMCPServer()
mcp = _server.mcp
