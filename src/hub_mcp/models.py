# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the schema metadata cache.

This module defines the value types used throughout the system:
- TypeReference: Recursive type reference with NON_NULL/LIST wrappers
- InputValue, FieldDefinition, EnumValue, TypeDefinition: Schema model
- EntityRelationship: Derived entity-to-entity edge
- SchemaSnapshot: Immutable, wholesale-replaced view of one loaded schema
- GraphQLRequest, GraphQLError, GraphQLResponse: Upstream wire types
- ValidationError, ValidationResult: Query validator output
- CacheStatistics: Lookup memo performance counters

Schema model types are frozen dataclasses holding tuples so a snapshot can be
shared between threads without copying.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from hub_mcp.cache import LookupCache


class TypeKind:
    """GraphQL introspection type kinds.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    OBJECT = "OBJECT"
    INPUT_OBJECT = "INPUT_OBJECT"
    ENUM = "ENUM"
    INTERFACE = "INTERFACE"
    SCALAR = "SCALAR"
    UNION = "UNION"
    NON_NULL = "NON_NULL"  # wrapper only
    LIST = "LIST"  # wrapper only

    WRAPPERS = (NON_NULL, LIST)


class Direction:
    """Relationship direction relative to the source entity."""

    IN = "IN"
    OUT = "OUT"


class ErrorType:
    """Validation error types returned as data by the query validator."""

    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"


@dataclass(frozen=True)
class TypeReference:
    """A possibly-wrapped reference to a named type.

    Wrapper nodes (NON_NULL, LIST) carry ``of_type``; the innermost node carries
    ``name``.
    """

    kind: str
    name: Optional[str] = None
    of_type: Optional["TypeReference"] = None

    @property
    def unwrapped_name(self) -> Optional[str]:
        """Name of the innermost concrete type, or None if the chain has no name."""
        current: Optional[TypeReference] = self
        while current is not None:
            if current.name is not None:
                return current.name
            current = current.of_type
        return None

    @property
    def is_non_null(self) -> bool:
        return self.kind == TypeKind.NON_NULL

    @property
    def is_list(self) -> bool:
        """True if any level of the chain is a LIST wrapper."""
        current: Optional[TypeReference] = self
        while current is not None:
            if current.kind == TypeKind.LIST:
                return True
            current = current.of_type
        return False

    def to_graphql(self) -> str:
        """Render in SDL notation, e.g. ``[Foo!]!``."""
        if self.kind == TypeKind.NON_NULL:
            inner = self.of_type.to_graphql() if self.of_type else "Unknown"
            return f"{inner}!"
        if self.kind == TypeKind.LIST:
            inner = self.of_type.to_graphql() if self.of_type else "Unknown"
            return f"[{inner}]"
        return self.name or "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"kind": self.kind, "name": self.name}
        result["ofType"] = self.of_type.to_dict() if self.of_type else None
        return result


@dataclass(frozen=True)
class InputValue:
    """A field argument or input-object member."""

    name: str
    type: Optional[TypeReference]
    description: Optional[str] = None
    default_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.to_graphql() if self.type else None,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.default_value is not None:
            result["defaultValue"] = self.default_value
        return result


@dataclass(frozen=True)
class EnumValue:
    name: str
    description: Optional[str] = None
    is_deprecated: bool = False
    deprecation_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            result["description"] = self.description
        if self.is_deprecated:
            result["deprecated"] = True
            if self.deprecation_reason is not None:
                result["deprecationReason"] = self.deprecation_reason
        return result


@dataclass(frozen=True)
class FieldDefinition:
    """A field on an OBJECT or INTERFACE type."""

    name: str
    type: Optional[TypeReference]
    args: Tuple[InputValue, ...] = ()
    description: Optional[str] = None
    is_deprecated: bool = False
    deprecation_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.to_graphql() if self.type else "Unknown",
        }
        if self.description is not None:
            result["description"] = self.description
        if self.args:
            result["arguments"] = [
                f"{arg.name}: {arg.type.to_graphql() if arg.type else 'Unknown'}"
                for arg in self.args
            ]
        if self.is_deprecated:
            result["deprecated"] = True
            if self.deprecation_reason is not None:
                result["deprecationReason"] = self.deprecation_reason
        return result


@dataclass(frozen=True)
class TypeDefinition:
    """A named schema type.

    Invariant: ``name`` is never empty and never starts with ``__``; the loader
    drops such entries.
    """

    name: str
    kind: str
    description: Optional[str] = None
    fields: Tuple[FieldDefinition, ...] = ()
    interfaces: Tuple[str, ...] = ()
    enum_values: Tuple[EnumValue, ...] = ()
    input_fields: Tuple[InputValue, ...] = ()

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for type_field in self.fields:
            if type_field.name == name:
                return type_field
        return None

    @property
    def field_names(self) -> List[str]:
        return [type_field.name for type_field in self.fields]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {"name": self.name, "kind": self.kind}
        if self.description is not None:
            result["description"] = self.description
        if self.interfaces:
            result["interfaces"] = list(self.interfaces)
        if self.fields:
            result["fields"] = [type_field.to_dict() for type_field in self.fields]
        if self.input_fields:
            result["inputFields"] = [value.to_dict() for value in self.input_fields]
        if self.enum_values:
            result["enumValues"] = [value.to_dict() for value in self.enum_values]
        return result


@dataclass(frozen=True)
class EntityRelationship:
    """A directed edge between two entity types.

    Derived from the schema at load time, never persisted on its own.
    """

    source_entity: str
    target_entity: str
    relationship_type: str  # e.g. "isContainedIn"
    direction: str  # Direction value
    field_name: str  # e.g. "relationshipsOut.isContainedIn"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceEntity": self.source_entity,
            "targetEntity": self.target_entity,
            "relationshipType": self.relationship_type,
            "direction": self.direction,
            "fieldName": self.field_name,
        }


class SchemaSnapshot:
    """One fully loaded, immutable schema generation.

    Holds the type index, the relationship graph derived from it and a bounded
    lookup memo. Nothing in a snapshot changes after construction; a refresh
    builds a new snapshot and swaps the reference, which also discards the
    relationship graph and the memo in one step.
    """

    def __init__(
        self,
        types: Mapping[str, TypeDefinition],
        relationships: Mapping[str, List[EntityRelationship]],
        loaded_at: datetime,
        generation: int,
        lookups: Optional["LookupCache"] = None,
    ) -> None:
        self._types: Mapping[str, TypeDefinition] = MappingProxyType(dict(types))
        self._relationships: Mapping[str, Tuple[EntityRelationship, ...]] = MappingProxyType(
            {name: tuple(edges) for name, edges in relationships.items()}
        )
        self._loaded_at = loaded_at
        self._generation = generation
        self._lookups = lookups

    @property
    def types(self) -> Mapping[str, TypeDefinition]:
        """Read-only mapping of type name to definition, in declaration order."""
        return self._types

    @property
    def relationships(self) -> Mapping[str, Tuple[EntityRelationship, ...]]:
        """Read-only mapping of entity name to its outbound relationships."""
        return self._relationships

    @property
    def loaded_at(self) -> datetime:
        return self._loaded_at

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def lookups(self) -> Optional["LookupCache"]:
        return self._lookups

    @property
    def type_count(self) -> int:
        return len(self._types)

    @property
    def type_names(self) -> List[str]:
        return list(self._types)

    def get_type(self, name: str) -> Optional[TypeDefinition]:
        return self._types.get(name)

    def has_type(self, name: str) -> bool:
        return name in self._types

    def get_types_by_kind(self, kind: str) -> List[TypeDefinition]:
        return [type_def for type_def in self._types.values() if type_def.kind == kind]

    def get_types_by_prefix(self, prefix: str) -> List[TypeDefinition]:
        return [type_def for type_def in self._types.values() if type_def.name.startswith(prefix)]

    def to_dict(self) -> Dict[str, Any]:
        """Summary used by tools; the full type list is too large to return."""
        return {
            "typeCount": self.type_count,
            "entityCount": len(self._relationships),
            "loadedAt": self._loaded_at.isoformat(),
            "generation": self._generation,
        }


@dataclass(frozen=True)
class GraphQLRequest:
    query: str
    variables: Optional[Dict[str, Any]] = None
    operation_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body sent upstream."""
        return {
            "query": self.query,
            "variables": self.variables,
            "operationName": self.operation_name,
        }


@dataclass
class GraphQLError:
    """One entry of a GraphQL response ``errors`` list."""

    message: str
    locations: Optional[List[Dict[str, int]]] = None
    path: Optional[List[Any]] = None
    extensions: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"message": self.message}
        if self.locations is not None:
            result["locations"] = self.locations
        if self.path is not None:
            result["path"] = self.path
        if self.extensions is not None:
            result["extensions"] = self.extensions
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphQLError":
        return cls(
            message=str(data.get("message", "")),
            locations=data.get("locations"),
            path=data.get("path"),
            extensions=data.get("extensions"),
        )


@dataclass
class GraphQLResponse:
    """Parsed upstream response plus the number of retries it took."""

    data: Optional[Dict[str, Any]] = None
    errors: List[GraphQLError] = field(default_factory=list)
    extensions: Optional[Dict[str, Any]] = None
    retries: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def query_complexity(self) -> int:
        """Complexity hint reported by the server, 0 when absent."""
        if not self.extensions:
            return 0
        value = self.extensions.get("queryComplexity")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
        return 0

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], retries: int = 0) -> "GraphQLResponse":
        raw_errors = payload.get("errors") or []
        return cls(
            data=payload.get("data"),
            errors=[GraphQLError.from_dict(e) for e in raw_errors if isinstance(e, dict)],
            extensions=payload.get("extensions"),
            retries=retries,
        )


@dataclass(frozen=True)
class ValidationError:
    type: str  # ErrorType value
    message: str
    type_name: Optional[str] = None
    field_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.type_name is not None:
            result["typeName"] = self.type_name
        if self.field_name is not None:
            result["fieldName"] = self.field_name
        return result


@dataclass
class ValidationResult:
    """Outcome of a structural query check.

    ``estimated_complexity`` is a rough approximation (field-like token count
    scaled by nesting depth), not the server's cost model.
    """

    valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    estimated_complexity: int = 0
    field_count: int = 0
    schema_checked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [error.to_dict() for error in self.errors],
            "suggestions": list(self.suggestions),
            "estimatedComplexity": self.estimated_complexity,
            "fieldsRequested": self.field_count,
            "schemaChecked": self.schema_checked,
        }


@dataclass
class CacheStatistics:
    """Statistics for the per-snapshot lookup memo."""

    hits: int
    misses: int
    evictions_lru: int  # Number of LRU evictions
    current_entry_count: int
    peak_entry_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict.

        Returns:
            Dictionary with all statistics fields.
        """
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions_lru": self.evictions_lru,
            "current_entry_count": self.current_entry_count,
            "peak_entry_count": self.peak_entry_count,
        }
