# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Formatting of service results into tool responses.

Produces JSON-compatible dicts for type details, type listings, relationship
paths and validation results, plus example query text for entity types.
"""

from typing import Any, Dict, List, Optional, Sequence

from hub_mcp.models import EntityRelationship, FieldDefinition, TypeDefinition, ValidationResult
from hub_mcp.relationship_builder import EntityNamingConvention

COMMON_FIELDS = frozenset(
    [
        "id",
        "name",
        "properties",
        "state",
        "status",
        "createdAt",
        "updatedAt",
        "description",
        "version",
        "type",
        "severity",
        "score",
    ]
)

DESCRIPTION_PREVIEW_CHARS = 100
LIST_LIMIT_NOTE = (
    "Results limited to 20 types. Use more specific search terms or filters to narrow results."
)
NON_STANDARD_ENTITY = "# Non-standard entity type - consult schema documentation"
COMPLEXITY_NOTE = (
    "estimatedComplexity is a rough approximation (field count scaled by nesting depth), "
    "not the server's cost model"
)

_INDENT_STEP = 2


def format_error(message: str, **extra: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": False, "error": message}
    result.update(extra)
    return result


def not_found_message(type_name: str, similar: Sequence[str]) -> str:
    message = f"Type '{type_name}' not found."
    if similar:
        message += f" Did you mean: {', '.join(similar)}?"
    return message


def is_relationship_field(field_name: str, convention: EntityNamingConvention) -> bool:
    return (
        field_name in (convention.incoming_field, convention.outgoing_field)
        or field_name.endswith("_RelIn")
        or field_name.endswith("_RelOut")
    )


def format_field(field_def: FieldDefinition, show_common_fields: bool) -> Dict[str, Any]:
    info = field_def.to_dict()
    if show_common_fields and field_def.name in COMMON_FIELDS:
        info["commonField"] = True
    return info


def format_type_details(
    type_def: TypeDefinition,
    convention: EntityNamingConvention,
    show_relationships: bool = False,
    show_common_fields: bool = False,
) -> Dict[str, Any]:
    """Describe one type: fields, arguments, deprecation, enum values, example query.

    Relationship container fields are listed separately and only when
    show_relationships is set.
    """
    result: Dict[str, Any] = {"name": type_def.name, "kind": type_def.kind}
    if type_def.description is not None:
        result["description"] = type_def.description
    if type_def.interfaces:
        result["interfaces"] = list(type_def.interfaces)

    if type_def.fields:
        fields: List[Dict[str, Any]] = []
        relationship_fields: List[Dict[str, Any]] = []
        for field_def in type_def.fields:
            info = format_field(field_def, show_common_fields)
            if is_relationship_field(field_def.name, convention):
                if show_relationships:
                    relationship_fields.append(info)
            else:
                fields.append(info)
        result["fields"] = fields
        if relationship_fields:
            result["relationships"] = relationship_fields

    if type_def.input_fields:
        result["inputFields"] = [value.to_dict() for value in type_def.input_fields]

    if type_def.enum_values:
        result["enumValues"] = [value.to_dict() for value in type_def.enum_values]

    if type_def.name.startswith(convention.entity_prefix):
        result["exampleQuery"] = generate_example_query(type_def, convention)

    return result


def format_type_list(
    types: Sequence[TypeDefinition],
    domain: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 20,
) -> Dict[str, Any]:
    result: Dict[str, Any] = {"totalFound": len(types)}
    if domain is not None:
        result["domain"] = domain
    if search is not None:
        result["searchTerm"] = search

    listing: List[Dict[str, Any]] = []
    for type_def in types:
        info: Dict[str, Any] = {"name": type_def.name, "kind": type_def.kind}
        if type_def.description is not None:
            description = type_def.description
            if len(description) > DESCRIPTION_PREVIEW_CHARS:
                description = description[:DESCRIPTION_PREVIEW_CHARS] + "..."
            info["description"] = description
        info["fieldCount"] = len(type_def.fields)
        listing.append(info)
    result["types"] = listing

    if len(types) == limit:
        result["note"] = LIST_LIMIT_NOTE
    return result


def _entity_query_path(type_name: str, convention: EntityNamingConvention) -> Optional[List[str]]:
    """Return [domain, entity] for Entity_Tanzu_{Domain}_{Entity}_Type names."""
    parts = type_name.split("_")
    if (
        len(parts) < 5
        or not type_name.startswith(convention.entity_prefix)
        or not type_name.endswith(convention.type_suffix)
    ):
        return None
    return [parts[2].lower(), parts[3].lower()]


def _open_entity_query(domain: str, entity: str) -> List[str]:
    return [
        "query {",
        "  entityQuery {",
        "    typed {",
        "      tanzu {",
        f"        {domain} {{",
        f"          {entity} {{",
        "            query(first: 10) {",
        "              edges {",
        "                node {",
        "                  id",
    ]


def generate_example_query(type_def: TypeDefinition, convention: EntityNamingConvention) -> str:
    """Example paginated query for an entity type."""
    query_path = _entity_query_path(type_def.name, convention)
    if query_path is None:
        return NON_STANDARD_ENTITY

    lines = _open_entity_query(*query_path)
    if type_def.get_field("properties") is not None:
        lines += [
            "                  properties {",
            "                    name",
            "                  }",
        ]
    lines += [
        "                }",
        "              }",
        "              pageInfo {",
        "                hasNextPage",
        "                endCursor",
        "              }",
        "            }",
        "          }",
        "        }",
        "      }",
        "    }",
        "  }",
        "}",
    ]
    return "\n".join(lines)


def generate_path_query_template(
    from_entity: str, path: Sequence[EntityRelationship], convention: EntityNamingConvention
) -> str:
    """Query template that walks a relationship path with nested inline fragments.

    A dotted field name such as ``relationshipsOut.isContainedIn`` becomes one
    selection block per segment.
    """
    query_path = _entity_query_path(from_entity, convention)
    if query_path is None:
        return NON_STANDARD_ENTITY

    lines = _open_entity_query(*query_path)
    lines.append("                  properties { name }")

    indent = 18
    closers: List[int] = []
    for rel in path:
        for segment in rel.field_name.split(".") + ["edges", "node"]:
            lines.append(f"{' ' * indent}{segment} {{")
            closers.append(indent)
            indent += _INDENT_STEP
        spaces = " " * indent
        lines += [
            f"{spaces}... on {rel.target_entity} {{",
            f"{spaces}  id",
            f"{spaces}  properties {{ name }}",
        ]
        closers.append(indent)
        indent += _INDENT_STEP

    for closer in reversed(closers):
        lines.append(f"{' ' * closer}}}")

    lines += [
        "                }",
        "              }",
        "            }",
        "          }",
        "        }",
        "      }",
        "    }",
        "  }",
        "}",
    ]
    return "\n".join(lines)


def format_paths(
    from_entity: str,
    to_entity: str,
    paths: Sequence[Sequence[EntityRelationship]],
    convention: EntityNamingConvention,
) -> Dict[str, Any]:
    path_list: List[Dict[str, Any]] = []
    for number, path in enumerate(paths, start=1):
        traversal = [from_entity]
        traversal += [f"  --[{rel.field_name}]--> {rel.target_entity}" for rel in path]
        path_list.append(
            {
                "pathNumber": number,
                "steps": len(path),
                "traversal": traversal,
                "queryTemplate": generate_path_query_template(from_entity, path, convention),
            }
        )
    return {
        "fromType": from_entity,
        "toType": to_entity,
        "pathsFound": len(paths),
        "paths": path_list,
    }


def format_no_path_found(
    from_entity: str, to_entity: str, max_depth: int, convention: EntityNamingConvention
) -> Dict[str, Any]:
    return {
        "fromType": from_entity,
        "toType": to_entity,
        "pathsFound": 0,
        "message": (
            f"No path found between {from_entity} and {to_entity} within {max_depth} steps."
        ),
        "suggestions": [
            f"Try increasing maxDepth (current: {max_depth})",
            f"Verify both types are entity types (should start with {convention.entity_prefix})",
            "Use explore_schema to check available relationships for each type",
        ],
    }


def format_validation_result(result: ValidationResult) -> Dict[str, Any]:
    response: Dict[str, Any] = {"valid": result.valid}
    if result.valid:
        response["message"] = "Query is valid and ready to execute"
        response["estimatedComplexity"] = result.estimated_complexity
        response["fieldsRequested"] = result.field_count
        response["note"] = COMPLEXITY_NOTE
    else:
        response["errors"] = [error.to_dict() for error in result.errors]
        if result.suggestions:
            response["suggestions"] = list(result.suggestions)
    if not result.schema_checked:
        response["schemaChecked"] = False
    return response
