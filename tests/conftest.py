# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: sample schema, a fake hub endpoint and wired services."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import httpx
import pytest
from introspection_builders import introspection_data

from hub_mcp.config import Config
from hub_mcp.executor import GraphQLExecutor
from hub_mcp.models import TypeDefinition
from hub_mcp.relationship_builder import build_relationship_graph
from hub_mcp.schema_parser import parse_introspection
from hub_mcp.service import SchemaService

ENDPOINT = "https://hub.example.com/hub/graphql"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeHub:
    """Scripted GraphQL endpoint for httpx.MockTransport.

    Queued replies are served first, in order; once the queue is empty,
    introspection requests get the sample schema and anything else gets
    ``{"data": {}}``.
    """

    def __init__(self, schema_data: Optional[Dict[str, Any]] = None) -> None:
        self.schema_data = schema_data if schema_data is not None else introspection_data()
        self.replies: List[Reply] = []
        self.requests: List[Dict[str, Any]] = []
        self.sleeps: List[float] = []

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            if callable(reply):
                return reply(request)
            return reply
        if "__schema" in self.requests[-1]["query"]:
            return httpx.Response(200, json={"data": self.schema_data})
        return httpx.Response(200, json={"data": {}})

    @property
    def introspection_calls(self) -> int:
        return sum(1 for body in self.requests if "__schema" in body["query"])

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def raw_schema() -> Dict[str, Any]:
    return introspection_data()


@pytest.fixture
def schema_types(raw_schema: Dict[str, Any]) -> Dict[str, TypeDefinition]:
    return parse_introspection(raw_schema)


@pytest.fixture
def relationship_graph(schema_types: Dict[str, TypeDefinition]):
    return build_relationship_graph(schema_types)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Defaults with scheduled refresh off so no background thread starts."""
    config_file = tmp_path / ".hub_mcp.yml"
    config_file.write_text(f"endpoint_url: {ENDPOINT}\nenable_scheduled_refresh: false\n")
    return Config(config_file)


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def executor(hub: FakeHub) -> Iterator[GraphQLExecutor]:
    client = httpx.Client(transport=httpx.MockTransport(hub.handle))
    executor = GraphQLExecutor(
        ENDPOINT, timeout_seconds=5, max_retries=3, client=client, sleep=hub.sleep
    )
    yield executor
    client.close()


@pytest.fixture
def service(config: Config, executor: GraphQLExecutor) -> SchemaService:
    return SchemaService(config=config, executor=executor)
