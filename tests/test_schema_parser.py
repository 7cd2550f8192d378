# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for introspection parsing."""

import pytest
from introspection_builders import (
    APP,
    field,
    input_value,
    introspection_data,
    list_of,
    named,
    non_null,
    object_type,
    scalar,
)

from hub_mcp.exceptions import SchemaParseError
from hub_mcp.models import TypeKind
from hub_mcp.schema_parser import parse_introspection, parse_type_reference


def _deep_reference(depth: int):
    ref = scalar("String")
    for _ in range(depth - 1):
        ref = list_of(ref)
    return ref


class TestParseIntrospection:
    def test_parses_sample_schema(self, schema_types):
        assert len(schema_types) == 23
        assert APP in schema_types
        assert schema_types["Severity"].kind == TypeKind.ENUM

    def test_drops_introspection_types(self, schema_types):
        assert not any(name.startswith("__") for name in schema_types)

    def test_keeps_declaration_order(self, schema_types):
        assert list(schema_types)[:3] == ["Query", "EntityQuery", "TypedQuery"]

    def test_field_types_and_wrappers(self, schema_types):
        id_field = schema_types[APP].get_field("id")
        assert id_field is not None
        assert id_field.type.is_non_null
        assert id_field.type.unwrapped_name == "ID"

    def test_enum_values_and_deprecation(self, schema_types):
        values = schema_types["Severity"].enum_values
        assert [v.name for v in values] == ["LOW", "CRITICAL", "HIGH"]
        assert values[1].is_deprecated
        assert values[1].deprecation_reason == "Use HIGH"

    def test_input_fields(self, schema_types):
        inputs = schema_types["ApplicationFilterInput"].input_fields
        assert [i.name for i in inputs] == ["name", "limit"]
        assert inputs[1].default_value == "10"

    def test_field_arguments(self):
        first = input_value("first", scalar("Int"))
        raw = object_type("Query", [field("items", list_of(named("Item")), args=[first])])
        types = parse_introspection(introspection_data([raw]))
        items = types["Query"].get_field("items")
        assert items is not None
        assert [arg.name for arg in items.args] == ["first"]
        assert items.to_dict()["arguments"] == ["first: Int"]

    @pytest.mark.parametrize("data", [None, {}, {"__schema": {}}, {"__schema": {"types": None}}])
    def test_missing_payload_yields_empty_index(self, data):
        assert parse_introspection(data) == {}

    def test_skips_nameless_entries(self):
        types = parse_introspection(
            introspection_data([{"kind": "OBJECT", "name": None}, object_type("Kept")])
        )
        assert list(types) == ["Kept"]

    def test_too_deep_reference_drops_only_that_field(self):
        raw = object_type(
            "Thing",
            [field("ok", scalar("String")), field("deep", _deep_reference(40))],
        )
        types = parse_introspection(introspection_data([raw]))
        assert types["Thing"].field_names == ["ok"]


class TestParseTypeReference:
    def test_nested_chain(self):
        ref = parse_type_reference(non_null(list_of(non_null(named("Foo")))))
        assert ref.to_graphql() == "[Foo!]!"

    def test_depth_limit(self):
        with pytest.raises(SchemaParseError):
            parse_type_reference(_deep_reference(5), max_depth=4)

    def test_depth_at_limit_is_accepted(self):
        ref = parse_type_reference(_deep_reference(4), max_depth=4)
        assert ref.unwrapped_name == "String"
