# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for MCP Server Protocol Layer.

Test coverage:
- Server initialization, unique server name and tool registration
- Each tool returns structured success/error objects and never raises
- Destructive mutation confirmation gate
- Slow upstream calls leave the event loop free for other tools
- Command-line parsing
"""

import asyncio
import threading
from pathlib import Path
from typing import List
from unittest.mock import AsyncMock

import httpx
import pytest

# Skip tests if mcp package not available
pytest.importorskip("mcp", reason="MCP package not installed")

from introspection_builders import APP, FOUNDATION, SPACE  # noqa: E402

from hub_mcp.config import Config  # noqa: E402
from hub_mcp.exceptions import ErrorCode, QuerySyntaxError  # noqa: E402
from hub_mcp.mcp_server import HubMCPServer, parse_args, parse_variables  # noqa: E402
from hub_mcp.refresh_scheduler import SchemaRefreshScheduler  # noqa: E402
from hub_mcp.service import SchemaService  # noqa: E402

TOOL_NAMES = {
    "explore_schema",
    "find_entity_path",
    "validate_query",
    "graphql_query",
    "graphql_mutate",
    "refresh_schema",
}


@pytest.fixture
def server(config, service) -> HubMCPServer:
    return HubMCPServer(config=config, service=service)


@pytest.fixture
def ctx() -> AsyncMock:
    mock_ctx = AsyncMock()
    mock_ctx.info = AsyncMock()
    mock_ctx.error = AsyncMock()
    return mock_ctx


def _tool(server: HubMCPServer, name: str):
    tool = server.mcp._tool_manager.get_tool(name)
    assert tool is not None, f"tool {name} not registered"
    return tool.fn


class TestHubMCPServer:
    def test_server_initialization(self, server, config, service):
        assert server.config is config
        assert server.service is service
        assert server.mcp is not None

    def test_server_name_is_unique(self, server):
        assert server.mcp.name == "hub-mcp"

    def test_tools_are_registered(self, server):
        registered = {tool.name for tool in server.mcp._tool_manager.list_tools()}
        assert registered == TOOL_NAMES

    def test_scheduler_disabled_by_config(self, server):
        assert server.scheduler is None

    def test_scheduler_created_but_not_started(self, tmp_path: Path):
        config = Config(tmp_path / "missing.yml")
        server = HubMCPServer(config=config)
        try:
            assert isinstance(server.scheduler, SchemaRefreshScheduler)
            assert not server.scheduler.is_running()
        finally:
            server.shutdown()

    def test_initialization_does_not_load_schema(self, server, hub):
        assert hub.requests == []
        assert not server.service.is_schema_loaded()

    def test_protocol_layer_delegates_to_service(self, server):
        assert isinstance(server.service, SchemaService)

    def test_shutdown(self, server):
        server.shutdown()


class TestExploreSchema:
    @pytest.mark.asyncio
    async def test_type_details(self, server, ctx):
        result = await _tool(server, "explore_schema")(ctx=ctx, type_name=APP)

        assert result["name"] == APP
        assert result["kind"] == "OBJECT"
        assert "exampleQuery" in result
        ctx.info.assert_called()

    @pytest.mark.asyncio
    async def test_unknown_type_suggests(self, server, ctx):
        result = await _tool(server, "explore_schema")(
            ctx=ctx, type_name="Entity_Tanzu_TAS_Spac_Type"
        )

        assert result["success"] is False
        assert f"Did you mean: {SPACE}?" in result["error"]

    @pytest.mark.asyncio
    async def test_search_listing(self, server, ctx):
        result = await _tool(server, "explore_schema")(ctx=ctx, search="severity")
        assert result["totalFound"] == 1
        assert result["types"][0]["name"] == "Severity"

    @pytest.mark.asyncio
    async def test_schema_unavailable(self, server, ctx, hub):
        hub.queue(*[httpx.Response(503) for _ in range(4)])

        result = await _tool(server, "explore_schema")(ctx=ctx, type_name=APP)

        assert result["success"] is False
        assert result["code"] == ErrorCode.SCHEMA_UNAVAILABLE
        ctx.error.assert_called()


class TestFindEntityPath:
    @pytest.mark.asyncio
    async def test_path_found(self, server, ctx):
        result = await _tool(server, "find_entity_path")(APP, FOUNDATION, ctx, max_depth=3)

        assert result["pathsFound"] == 1
        assert result["paths"][0]["steps"] == 3

    @pytest.mark.asyncio
    async def test_no_path_within_depth(self, server, ctx):
        result = await _tool(server, "find_entity_path")(APP, FOUNDATION, ctx, max_depth=2)

        assert result["pathsFound"] == 0
        assert "suggestions" in result

    @pytest.mark.asyncio
    async def test_unknown_type(self, server, ctx):
        result = await _tool(server, "find_entity_path")("Nope_Type", FOUNDATION, ctx)
        assert result["success"] is False
        assert "Type 'Nope_Type' not found." in result["error"]

    @pytest.mark.asyncio
    async def test_missing_argument(self, server, ctx, hub):
        result = await _tool(server, "find_entity_path")("", FOUNDATION, ctx)
        assert result == {"success": False, "error": "fromType is required"}
        assert hub.requests == []


class TestValidateQuery:
    @pytest.mark.asyncio
    async def test_valid(self, server, ctx):
        result = await _tool(server, "validate_query")("query { entityQuery { typed } }", ctx)
        assert result["valid"] is True
        assert result["estimatedComplexity"] > 0

    @pytest.mark.asyncio
    async def test_invalid_with_suggestion(self, server, ctx):
        result = await _tool(server, "validate_query")(
            "query { node { ... on Entity_Tanzu_TAS_Spac_Type { id } }", ctx
        )
        assert result["valid"] is False
        assert len(result["errors"]) == 2
        assert SPACE in result["suggestions"][0]

    @pytest.mark.asyncio
    async def test_field_checks(self, server, ctx):
        result = await _tool(server, "validate_query")(
            f"query {{ node {{ ... on {APP} {{ nmae }} }} }}", ctx, check_fields=True
        )
        assert result["errors"][0]["type"] == "UNKNOWN_FIELD"


class TestGraphQLQuery:
    @pytest.mark.asyncio
    async def test_success(self, server, ctx, hub):
        hub.queue(
            httpx.Response(
                200, json={"data": {"entityQuery": {}}, "extensions": {"queryComplexity": 7}}
            )
        )

        result = await _tool(server, "graphql_query")(
            "query Q($n: Int) { entityQuery(first: $n) { typed } }", ctx, variables='{"n": 5}'
        )

        assert result == {
            "success": True,
            "data": {"entityQuery": {}},
            "queryComplexity": 7,
            "retries": 0,
        }
        assert hub.requests[-1]["variables"] == {"n": 5}

    @pytest.mark.asyncio
    async def test_invalid_variables(self, server, ctx, hub):
        result = await _tool(server, "graphql_query")("query { a }", ctx, variables="{nope")
        assert result["code"] == ErrorCode.SYNTAX_ERROR
        assert hub.requests == []

    @pytest.mark.asyncio
    async def test_syntax_error(self, server, ctx, hub):
        result = await _tool(server, "graphql_query")("query { a ", ctx)
        assert result["success"] is False
        assert result["code"] == ErrorCode.SYNTAX_ERROR
        assert hub.requests == []

    @pytest.mark.asyncio
    async def test_graphql_errors(self, server, ctx, hub):
        hub.queue(httpx.Response(200, json={"errors": [{"message": "Cannot query field 'a'"}]}))

        result = await _tool(server, "graphql_query")("query { a }", ctx)

        assert result["code"] == ErrorCode.GRAPHQL_ERROR
        assert result["errors"] == [{"message": "Cannot query field 'a'"}]
        ctx.error.assert_called()

    @pytest.mark.asyncio
    async def test_upstream_failure_reports_retries(self, server, ctx, hub):
        hub.queue(*[httpx.Response(502) for _ in range(4)])

        result = await _tool(server, "graphql_query")("query { a }", ctx)

        assert result["code"] == ErrorCode.UPSTREAM_ERROR
        assert result["details"]["retries"] == 3


class TestGraphQLMutate:
    @pytest.mark.asyncio
    async def test_destructive_requires_confirm(self, server, ctx, hub):
        result = await _tool(server, "graphql_mutate")("mutation { deleteApp(id: 1) { id } }", ctx)

        assert result["success"] is False
        assert result["code"] == "CONFIRMATION_REQUIRED"
        assert hub.requests == []

    @pytest.mark.asyncio
    async def test_destructive_with_confirm(self, server, ctx, hub):
        hub.queue(httpx.Response(200, json={"data": {"deleteApp": {"id": "1"}}}))

        result = await _tool(server, "graphql_mutate")(
            "mutation { deleteApp(id: 1) { id } }", ctx, confirm=True
        )

        assert result["success"] is True
        assert result["data"] == {"deleteApp": {"id": "1"}}

    @pytest.mark.asyncio
    async def test_requires_mutation_keyword(self, server, ctx, hub):
        result = await _tool(server, "graphql_mutate")("query { a }", ctx)
        assert result["code"] == ErrorCode.SYNTAX_ERROR
        assert hub.requests == []


class TestRefreshSchema:
    @pytest.mark.asyncio
    async def test_refresh(self, server, ctx, hub):
        first = await _tool(server, "refresh_schema")(ctx)
        second = await _tool(server, "refresh_schema")(ctx)

        assert first["success"] is True
        assert first["typeCount"] == 23
        assert second["generation"] == first["generation"] + 1
        assert hub.introspection_calls == 2

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_schema(self, server, ctx, hub):
        await _tool(server, "refresh_schema")(ctx)
        hub.queue(*[httpx.Response(500) for _ in range(4)])

        failed = await _tool(server, "refresh_schema")(ctx)
        details = await _tool(server, "explore_schema")(ctx=ctx, type_name=APP)

        assert failed["success"] is False
        assert details["name"] == APP


class TestConcurrentTools:
    @pytest.mark.asyncio
    async def test_slow_upstream_leaves_other_tools_responsive(self, server, ctx, hub):
        server.service.get_schema()
        in_flight = threading.Event()
        release = threading.Event()
        released_in_time: List[bool] = []

        def slow_reply(request: httpx.Request) -> httpx.Response:
            in_flight.set()
            released_in_time.append(release.wait(timeout=5))
            return httpx.Response(200, json={"data": {"ok": True}})

        hub.queue(slow_reply)
        query_task = asyncio.create_task(_tool(server, "graphql_query")("query { ok }", ctx))
        for _ in range(500):
            if in_flight.is_set():
                break
            await asyncio.sleep(0.01)

        validation = await _tool(server, "validate_query")("query { ok }", ctx)
        release.set()
        result = await query_task

        assert validation["valid"] is True
        assert result["success"] is True
        assert released_in_time == [True]


class TestHelpers:
    def test_parse_variables(self):
        assert parse_variables(None) is None
        assert parse_variables("  ") is None
        assert parse_variables('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("text", ["[1, 2]", "{bad"])
    def test_parse_variables_rejects(self, text):
        with pytest.raises(QuerySyntaxError):
            parse_variables(text)

    def test_parse_args_defaults(self):
        args = parse_args([])
        assert args.transport == "stdio"
        assert args.config is None
        assert args.log_level == "INFO"

    def test_parse_args_options(self):
        args = parse_args(
            ["--config", "hub.yml", "--transport", "sse", "--log-dir", "/tmp/logs"]
        )
        assert args.config == Path("hub.yml")
        assert args.transport == "sse"
        assert args.log_dir == Path("/tmp/logs")
