# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests running MCP tools through the service against a fake hub."""
