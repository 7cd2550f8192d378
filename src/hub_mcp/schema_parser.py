# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Parse a raw introspection result into schema model instances.

Flow: introspection ``data`` dict -> parse_introspection -> {name: TypeDefinition}

Entries with a null or ``__``-prefixed name are introspection meta-types and
are dropped. Type references are walked iteratively up to MAX_TYPE_REF_DEPTH
levels; deeper chains raise SchemaParseError, which the caller of
parse_type_reference recovers from by dropping only the affected field or
argument.
"""

import logging
from typing import Any, Dict, List, Optional

from hub_mcp.exceptions import SchemaParseError
from hub_mcp.models import (
    EnumValue,
    FieldDefinition,
    InputValue,
    TypeDefinition,
    TypeReference,
)

logger = logging.getLogger(__name__)

# The introspection query nests TypeRef 7 levels deep; leave headroom.
MAX_TYPE_REF_DEPTH = 16

INTROSPECTION_PREFIX = "__"

# Sentinel for a field or argument whose type reference could not be parsed
_SKIP = object()


def parse_introspection(data: Optional[Dict[str, Any]]) -> Dict[str, TypeDefinition]:
    """Build the type index from an introspection ``data`` payload.

    Args:
        data: The ``data`` member of the introspection response.

    Returns:
        Mapping of type name to TypeDefinition in declaration order. Empty
        when the payload carries no ``__schema.types`` list.
    """
    types: Dict[str, TypeDefinition] = {}

    if data is None:
        logger.warning("Schema data is null")
        return types

    schema = data.get("__schema")
    if not isinstance(schema, dict):
        logger.warning("__schema not found in introspection result")
        return types

    raw_types = schema.get("types")
    if not isinstance(raw_types, list):
        logger.warning("No types found in schema")
        return types

    for raw_type in raw_types:
        if not isinstance(raw_type, dict):
            continue
        name = raw_type.get("name")
        if not name or name.startswith(INTROSPECTION_PREFIX):
            continue
        types[name] = parse_type(raw_type)

    logger.info(f"Parsed {len(types)} types from schema")
    return types


def parse_type(raw_type: Dict[str, Any]) -> TypeDefinition:
    name = raw_type["name"]

    fields: List[FieldDefinition] = []
    for raw_field in raw_type.get("fields") or []:
        parsed = _parse_field(raw_field, owner=name)
        if parsed is not None:
            fields.append(parsed)

    interfaces = [
        iface["name"]
        for iface in raw_type.get("interfaces") or []
        if isinstance(iface, dict) and iface.get("name")
    ]

    enum_values = [
        EnumValue(
            name=raw_value["name"],
            description=raw_value.get("description"),
            is_deprecated=bool(raw_value.get("isDeprecated")),
            deprecation_reason=raw_value.get("deprecationReason"),
        )
        for raw_value in raw_type.get("enumValues") or []
        if isinstance(raw_value, dict) and raw_value.get("name")
    ]

    input_fields: List[InputValue] = []
    for raw_input in raw_type.get("inputFields") or []:
        parsed_input = _parse_input_value(raw_input, owner=name)
        if parsed_input is not None:
            input_fields.append(parsed_input)

    return TypeDefinition(
        name=name,
        kind=raw_type.get("kind") or "",
        description=raw_type.get("description"),
        fields=tuple(fields),
        interfaces=tuple(interfaces),
        enum_values=tuple(enum_values),
        input_fields=tuple(input_fields),
    )


def parse_type_reference(
    raw_ref: Dict[str, Any], max_depth: int = MAX_TYPE_REF_DEPTH
) -> TypeReference:
    """Parse a nested ``{kind, name, ofType}`` chain without recursion.

    Raises:
        SchemaParseError: If the chain is deeper than max_depth.
    """
    chain: List[Dict[str, Any]] = []
    current: Optional[Dict[str, Any]] = raw_ref
    while current is not None:
        if len(chain) >= max_depth:
            raise SchemaParseError(
                f"Type reference nested deeper than {max_depth} levels",
                details={"max_depth": max_depth},
            )
        chain.append(current)
        of_type = current.get("ofType")
        current = of_type if isinstance(of_type, dict) else None

    # Build from the innermost node outwards
    result: Optional[TypeReference] = None
    for node in reversed(chain):
        result = TypeReference(kind=node.get("kind") or "", name=node.get("name"), of_type=result)
    assert result is not None
    return result


def _parse_field(raw_field: Any, owner: str) -> Optional[FieldDefinition]:
    if not isinstance(raw_field, dict) or not raw_field.get("name"):
        return None

    type_ref = _parse_reference_or_skip(raw_field.get("type"), f"{owner}.{raw_field['name']}")
    if type_ref is _SKIP:
        return None

    args: List[InputValue] = []
    for raw_arg in raw_field.get("args") or []:
        parsed = _parse_input_value(raw_arg, owner=f"{owner}.{raw_field['name']}")
        if parsed is not None:
            args.append(parsed)

    return FieldDefinition(
        name=raw_field["name"],
        type=type_ref,  # type: ignore[arg-type]
        args=tuple(args),
        description=raw_field.get("description"),
        is_deprecated=bool(raw_field.get("isDeprecated")),
        deprecation_reason=raw_field.get("deprecationReason"),
    )


def _parse_input_value(raw_input: Any, owner: str) -> Optional[InputValue]:
    if not isinstance(raw_input, dict) or not raw_input.get("name"):
        return None

    type_ref = _parse_reference_or_skip(raw_input.get("type"), f"{owner}({raw_input['name']})")
    if type_ref is _SKIP:
        return None

    return InputValue(
        name=raw_input["name"],
        type=type_ref,  # type: ignore[arg-type]
        description=raw_input.get("description"),
        default_value=raw_input.get("defaultValue"),
    )


def _parse_reference_or_skip(raw_ref: Any, location: str) -> Any:
    """Return a TypeReference, None when absent, or _SKIP when unparseable."""
    if not isinstance(raw_ref, dict):
        return None
    try:
        return parse_type_reference(raw_ref)
    except SchemaParseError as e:
        logger.warning(f"Dropping {location}: {e}")
        return _SKIP
