# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for tool response formatting."""

from introspection_builders import APP, FOUNDATION, ORG, SPACE

from hub_mcp.models import ErrorType, TypeDefinition, ValidationError, ValidationResult
from hub_mcp.path_finder import find_paths
from hub_mcp.relationship_builder import EntityNamingConvention
from hub_mcp.response_formatter import (
    LIST_LIMIT_NOTE,
    NON_STANDARD_ENTITY,
    format_no_path_found,
    format_paths,
    format_type_details,
    format_type_list,
    format_validation_result,
    generate_example_query,
    not_found_message,
)

CONVENTION = EntityNamingConvention()


class TestTypeDetails:
    def test_relationship_fields_hidden_by_default(self, schema_types):
        result = format_type_details(schema_types[SPACE], CONVENTION)
        field_names = [f["name"] for f in result["fields"]]
        assert "relationshipsOut" not in field_names
        assert "relationships" not in result

    def test_relationship_fields_shown(self, schema_types):
        result = format_type_details(schema_types[SPACE], CONVENTION, show_relationships=True)
        assert [f["name"] for f in result["relationships"]] == [
            "relationshipsOut",
            "relationshipsIn",
        ]

    def test_common_fields_flagged(self, schema_types):
        result = format_type_details(schema_types[APP], CONVENTION, show_common_fields=True)
        flagged = {f["name"] for f in result["fields"] if f.get("commonField")}
        assert flagged == {"id", "name", "properties"}

    def test_field_type_notation(self, schema_types):
        result = format_type_details(schema_types[APP], CONVENTION)
        assert result["fields"][0] == {"name": "id", "type": "ID!"}

    def test_enum_values(self, schema_types):
        result = format_type_details(schema_types["Severity"], CONVENTION)
        assert result["enumValues"][1] == {
            "name": "CRITICAL",
            "deprecated": True,
            "deprecationReason": "Use HIGH",
        }
        assert "exampleQuery" not in result

    def test_input_fields(self, schema_types):
        result = format_type_details(schema_types["ApplicationFilterInput"], CONVENTION)
        assert result["inputFields"][1] == {"name": "limit", "type": "Int", "defaultValue": "10"}

    def test_entity_has_example_query(self, schema_types):
        result = format_type_details(schema_types[APP], CONVENTION)
        assert "tas {" in result["exampleQuery"]
        assert "application {" in result["exampleQuery"]


class TestExampleQuery:
    def test_properties_selected_when_present(self, schema_types):
        query = generate_example_query(schema_types[APP], CONVENTION)
        assert "properties {" in query
        assert "pageInfo {" in query
        assert query.count("{") == query.count("}")

    def test_non_standard_entity(self):
        type_def = TypeDefinition("Entity_Tanzu_Odd", "OBJECT")
        assert generate_example_query(type_def, CONVENTION) == NON_STANDARD_ENTITY


class TestTypeList:
    def test_listing(self, schema_types):
        types = [schema_types[APP], schema_types["Severity"]]
        result = format_type_list(types, domain="TAS", search="app")
        assert result["totalFound"] == 2
        assert result["domain"] == "TAS"
        assert result["searchTerm"] == "app"
        assert result["types"][0]["fieldCount"] == 4
        assert "note" not in result

    def test_long_description_truncated(self):
        type_def = TypeDefinition("Long", "OBJECT", description="x" * 150)
        result = format_type_list([type_def])
        assert result["types"][0]["description"] == "x" * 100 + "..."

    def test_limit_note(self):
        types = [TypeDefinition(f"T{i}", "OBJECT") for i in range(20)]
        assert format_type_list(types)["note"] == LIST_LIMIT_NOTE


class TestPaths:
    def test_format_paths(self, relationship_graph):
        paths = find_paths(relationship_graph, APP, FOUNDATION, 3)
        result = format_paths(APP, FOUNDATION, paths, CONVENTION)

        assert result["pathsFound"] == 1
        path = result["paths"][0]
        assert path["pathNumber"] == 1
        assert path["steps"] == 3
        assert path["traversal"] == [
            APP,
            f"  --[relationshipsOut.isContainedIn]--> {SPACE}",
            f"  --[relationshipsOut.isContainedIn]--> {ORG}",
            f"  --[relationshipsOut.isContainedIn]--> {FOUNDATION}",
        ]

    def test_query_template_nests_fragments(self, relationship_graph):
        paths = find_paths(relationship_graph, APP, FOUNDATION, 3)
        template = format_paths(APP, FOUNDATION, paths, CONVENTION)["paths"][0]["queryTemplate"]
        assert f"... on {SPACE}" in template
        assert f"... on {FOUNDATION}" in template
        assert template.count("{") == template.count("}")

    def test_no_path(self):
        result = format_no_path_found(APP, FOUNDATION, 2, CONVENTION)
        assert result["pathsFound"] == 0
        assert "within 2 steps" in result["message"]
        assert "Try increasing maxDepth (current: 2)" in result["suggestions"]


class TestMessages:
    def test_not_found_with_suggestions(self):
        assert (
            not_found_message("Entity_Tanzu_TAS_Spac_Type", [SPACE])
            == f"Type 'Entity_Tanzu_TAS_Spac_Type' not found. Did you mean: {SPACE}?"
        )

    def test_not_found_without_suggestions(self):
        assert not_found_message("Nope", []) == "Type 'Nope' not found."

    def test_validation_result_valid(self):
        result = format_validation_result(
            ValidationResult(valid=True, estimated_complexity=6, field_count=3, schema_checked=True)
        )
        assert result["valid"] is True
        assert result["estimatedComplexity"] == 6
        assert "schemaChecked" not in result

    def test_validation_result_invalid(self):
        result = format_validation_result(
            ValidationResult(
                valid=False,
                errors=[ValidationError(ErrorType.SYNTAX_ERROR, "Unbalanced braces")],
            )
        )
        assert result["errors"] == [{"type": "SYNTAX_ERROR", "message": "Unbalanced braces"}]
        assert result["schemaChecked"] is False
