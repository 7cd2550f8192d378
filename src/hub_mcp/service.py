# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""SchemaService - Business logic layer for the MCP server.

Owns the executor, the schema cache and the query validator and exposes the
operations the tool layer calls.

Key Responsibilities:
- Lazy, single-flight schema loading and refresh
- Type lookup, search and "did you mean" suggestions
- Relationship graph access and path finding
- Query validation and upstream execution
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from hub_mcp.config import Config
from hub_mcp.executor import GraphQLExecutor
from hub_mcp.fuzzy import find_similar_names
from hub_mcp.models import (
    EntityRelationship,
    GraphQLRequest,
    GraphQLResponse,
    SchemaSnapshot,
    TypeDefinition,
    ValidationResult,
)
from hub_mcp.path_finder import DEFAULT_DEPTH, find_paths
from hub_mcp.query_validator import QueryValidator
from hub_mcp.relationship_builder import EntityNamingConvention
from hub_mcp.schema_cache import SchemaCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SEARCH_RESULTS = 20

# Domain filter -> substring of matching type names
DOMAIN_PREFIXES: Dict[str, str] = {
    "TAS": "Tanzu_TAS",
    "SPRING": "Tanzu_Spring",
    "OBSERVABILITY": "Observability",
    "SECURITY": "Vulnerability",
    "CAPACITY": "Capacity",
    "FLEET": "FleetManagement",
    "INSIGHTS": "Insight",
}

DESTRUCTIVE_KEYWORDS = ("delete", "remove", "destroy", "drop", "purge", "clear")


def get_domain_prefix(domain: Optional[str]) -> Optional[str]:
    if domain is None:
        return None
    return DOMAIN_PREFIXES.get(domain.strip().upper())


def is_destructive_mutation(mutation: Optional[str]) -> bool:
    """True if the mutation text mentions a destructive keyword."""
    if mutation is None:
        return False
    lowered = mutation.lower()
    return any(keyword in lowered for keyword in DESTRUCTIVE_KEYWORDS)


class SchemaService:
    """Facade over the schema cache, validator and executor.

    Usage:
        service = SchemaService(Config())
        type_def = service.get_type_details("Entity_Tanzu_TAS_Space_Type")
        paths = service.find_relationship_paths(app_type, foundation_type, 3)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        executor: Optional[GraphQLExecutor] = None,
        cache: Optional[SchemaCache] = None,
    ) -> None:
        """Initialize service.

        Args:
            config: Configuration object. If None, loads from default location.
            executor: Upstream executor. If None, built from config.
            cache: Schema cache. If None, built from config around executor.introspect.
        """
        if config is None:
            config = Config()
        self.config = config

        if executor is None:
            executor = GraphQLExecutor.from_config(config)
        self.executor = executor

        self.convention = EntityNamingConvention(
            entity_prefix=config.entity_prefix,
            acronyms=frozenset(acronym.lower() for acronym in config.entity_acronyms),
        )

        if cache is None:
            cache = SchemaCache(
                loader=executor.introspect,
                ttl=timedelta(hours=config.cache_ttl_hours),
                max_lookup_entries=config.cache_max_size,
                convention=self.convention,
            )
        self.cache = cache

        self.validator = QueryValidator(
            schema_provider=self.cache.get_schema,
            entity_prefix=config.entity_prefix,
            type_suggester=self._similar_types_in,
            field_suggester=self._similar_fields_in,
        )

        logger.info("SchemaService initialized")

    # Schema access

    def get_schema(self) -> SchemaSnapshot:
        return self.cache.get_schema()

    def is_schema_loaded(self) -> bool:
        return self.cache.is_loaded()

    def refresh_schema(self) -> SchemaSnapshot:
        """Force a reload. Relationship graph and lookup memo are replaced with it."""
        return self.cache.refresh()

    def get_type_details(self, type_name: str) -> Optional[TypeDefinition]:
        """Look a type up in the full snapshot. Returns None when not found."""
        return self.cache.get_schema().get_type(type_name)

    def search_types(
        self,
        search_term: Optional[str] = None,
        domain: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> List[TypeDefinition]:
        """Filter types by substring, domain and kind; at most MAX_SEARCH_RESULTS.

        An unknown domain applies no domain filter.
        """
        snapshot = self.cache.get_schema()
        key = (
            "search",
            (search_term or "").strip().lower(),
            (domain or "").strip().upper(),
            (kind or "").strip().upper(),
        )
        results = self._memoized(
            snapshot, key, lambda: self._search(snapshot, search_term, domain, kind)
        )
        return list(results)

    def get_types_by_domain(self, domain: str) -> List[TypeDefinition]:
        """All types of a domain; empty for an unknown domain."""
        prefix = get_domain_prefix(domain)
        if prefix is None:
            return []
        snapshot = self.cache.get_schema()
        return [t for t in snapshot.types.values() if prefix in t.name]

    def find_similar_types(self, type_name: str) -> List[str]:
        return self._similar_types_in(self.cache.get_schema(), type_name)

    def find_similar_fields(self, type_name: str, field_name: str) -> List[str]:
        return self._similar_fields_in(self.cache.get_schema(), type_name, field_name)

    # Relationship graph

    def get_entity_relationships(self) -> Mapping[str, Sequence[EntityRelationship]]:
        return self.cache.get_schema().relationships

    def find_relationship_paths(
        self, from_entity: str, to_entity: str, max_depth: int = DEFAULT_DEPTH
    ) -> List[List[EntityRelationship]]:
        """Up to 5 paths of at most max_depth (clamped to 5) edges."""
        return find_paths(self.cache.get_schema().relationships, from_entity, to_entity, max_depth)

    # Validation

    def validate_query(
        self, query_text: Optional[str], suggest_fixes: bool = True, check_fields: bool = False
    ) -> ValidationResult:
        return self.validator.validate(
            query_text, suggest_fixes=suggest_fixes, check_fields=check_fields
        )

    def validate_mutation(
        self, query_text: Optional[str], suggest_fixes: bool = True
    ) -> ValidationResult:
        return self.validator.validate_mutation(query_text, suggest_fixes=suggest_fixes)

    # Execution

    def execute_query(self, request: GraphQLRequest) -> GraphQLResponse:
        return self.executor.execute_query(request)

    def execute_mutation(self, request: GraphQLRequest) -> GraphQLResponse:
        return self.executor.execute_mutation(request)

    def get_cache_statistics(self) -> Dict[str, Any]:
        """Snapshot metadata plus lookup memo counters, without triggering a load."""
        snapshot = self.cache.snapshot
        if snapshot is None:
            return {"loaded": False}
        stats: Dict[str, Any] = {"loaded": True}
        stats.update(snapshot.to_dict())
        if snapshot.lookups is not None:
            stats["lookups"] = snapshot.lookups.get_statistics().to_dict()
            stats["lookupHitRate"] = snapshot.lookups.get_hit_rate()
        return stats

    def shutdown(self) -> None:
        """Release the upstream HTTP client."""
        logger.info("Shutting down SchemaService")
        self.executor.close()

    # Internals

    def _similar_types_in(self, snapshot: SchemaSnapshot, type_name: str) -> List[str]:
        key = ("similar_types", type_name)
        return list(
            self._memoized(
                snapshot, key, lambda: tuple(find_similar_names(type_name, snapshot.type_names))
            )
        )

    def _similar_fields_in(
        self, snapshot: SchemaSnapshot, type_name: str, field_name: str
    ) -> List[str]:
        type_def = snapshot.get_type(type_name)
        if type_def is None:
            return []
        key = ("similar_fields", type_name, field_name)
        return list(
            self._memoized(
                snapshot, key, lambda: tuple(find_similar_names(field_name, type_def.field_names))
            )
        )

    @staticmethod
    def _memoized(snapshot: SchemaSnapshot, key: Tuple[str, ...], compute: Callable[[], T]) -> T:
        if snapshot.lookups is None:
            return compute()
        return snapshot.lookups.get_or_compute(key, compute)

    @staticmethod
    def _search(
        snapshot: SchemaSnapshot,
        search_term: Optional[str],
        domain: Optional[str],
        kind: Optional[str],
    ) -> Tuple[TypeDefinition, ...]:
        needle = search_term.strip().lower() if search_term and search_term.strip() else None
        prefix = get_domain_prefix(domain) if domain and domain.strip() else None
        wanted_kind = kind.strip().upper() if kind and kind.strip() else None

        results: List[TypeDefinition] = []
        for type_def in snapshot.types.values():
            if needle is not None:
                in_name = needle in type_def.name.lower()
                in_description = bool(
                    type_def.description and needle in type_def.description.lower()
                )
                if not (in_name or in_description):
                    continue
            if prefix is not None and prefix not in type_def.name:
                continue
            if wanted_kind is not None and type_def.kind.upper() != wanted_kind:
                continue
            results.append(type_def)
            if len(results) >= MAX_SEARCH_RESULTS:
                break
        return tuple(results)
