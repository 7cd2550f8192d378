# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Relationship graph builder for entity types.

This module derives entity-to-entity edges from schema naming conventions:

    Entity_Tanzu_TAS_Application_Type
      relationshipsOut: Entity_Tanzu_TAS_Application_RelOut        (container type)
        isContainedIn: Entity_Tanzu_TAS_Application_IsContainedIn_RelOut
          tanzu_tas_space: ...                                     (transliterated target)

Each field of a container type is one relationship kind. Its type names a
second-level type whose fields are transliterated entity names; the first one
that converts back to an existing entity type is the edge target.

Flow: {name: TypeDefinition} -> build_relationship_graph -> {entity: [EntityRelationship]}

The derivation is heuristic. Anything that does not match the convention is
skipped with a debug log; the build never raises for convention violations.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from hub_mcp.models import Direction, EntityRelationship, TypeDefinition

logger = logging.getLogger(__name__)

DEFAULT_ACRONYMS = ("tas", "tkg", "tmc", "aws", "gcp", "azure", "vm", "bosh")


@dataclass(frozen=True)
class EntityNamingConvention:
    """Naming rules used to recognise entities and decode transliterated names."""

    entity_prefix: str = "Entity_Tanzu_"
    name_root: str = "Entity"
    type_suffix: str = "_Type"
    incoming_field: str = "relationshipsIn"
    outgoing_field: str = "relationshipsOut"
    acronyms: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_ACRONYMS))

    def is_entity_type(self, type_name: str) -> bool:
        return type_name.startswith(self.entity_prefix) and type_name.endswith(self.type_suffix)

    def container_direction(self, field_name: str) -> Optional[str]:
        if field_name == self.incoming_field:
            return Direction.IN
        if field_name == self.outgoing_field:
            return Direction.OUT
        return None

    def container_field(self, direction: str) -> str:
        return self.incoming_field if direction == Direction.IN else self.outgoing_field


def normalized_name_to_entity_name(
    normalized_name: str,
    acronyms: FrozenSet[str] = frozenset(DEFAULT_ACRONYMS),
    name_root: str = "Entity",
    type_suffix: str = "_Type",
) -> Optional[str]:
    """Convert a transliterated field name back to an entity type name.

    Components listed in ``acronyms`` are upper-cased, all others title-cased.

    Example:
        tanzu_tas_space -> Entity_Tanzu_TAS_Space_Type

    Returns:
        The reconstructed name, or None for an empty input.
    """
    if not normalized_name:
        return None

    parts: List[str] = [name_root]
    for part in normalized_name.split("_"):
        if not part:
            continue
        if part.lower() in acronyms:
            parts.append(part.upper())
        else:
            parts.append(part[0].upper() + part[1:].lower())

    if len(parts) == 1:
        return None
    return "_".join(parts) + type_suffix


class RelationshipGraphBuilder:
    """Builds the entity relationship graph from a type index.

    The builder is stateless apart from its convention; building twice from
    the same types yields equal graphs.

    Usage:
        builder = RelationshipGraphBuilder(EntityNamingConvention())
        graph = builder.build(types)
    """

    def __init__(self, convention: Optional[EntityNamingConvention] = None) -> None:
        self.convention = convention or EntityNamingConvention()

    def build(self, types: Mapping[str, TypeDefinition]) -> Dict[str, List[EntityRelationship]]:
        """Build the graph.

        Args:
            types: Type index in schema declaration order.

        Returns:
            Mapping of entity name to its relationships. Entities without any
            resolved relationship are omitted.
        """
        graph: Dict[str, List[EntityRelationship]] = {}

        entity_types = [t for t in types.values() if self.convention.is_entity_type(t.name)]
        logger.debug(f"Building relationship graph for {len(entity_types)} entity types")

        for entity in entity_types:
            relationships: List[EntityRelationship] = []
            for entity_field in entity.fields:
                direction = self.convention.container_direction(entity_field.name)
                if direction is None:
                    continue
                container_name = entity_field.type.unwrapped_name if entity_field.type else None
                if container_name is None:
                    logger.debug(f"{entity.name}.{entity_field.name} has no named type, skipping")
                    continue
                relationships.extend(
                    self._extract_relationships(types, entity.name, container_name, direction)
                )

            if relationships:
                logger.debug(f"Entity {entity.name} has {len(relationships)} relationships")
                graph[entity.name] = relationships

        logger.info(f"Built relationship graph with {len(graph)} entities having relationships")
        return graph

    def _extract_relationships(
        self,
        types: Mapping[str, TypeDefinition],
        source_entity: str,
        container_name: str,
        direction: str,
    ) -> List[EntityRelationship]:
        relationships: List[EntityRelationship] = []

        container = types.get(container_name)
        if container is None:
            logger.debug(f"Relationship type {container_name} not found for entity {source_entity}")
            return relationships
        if not container.fields:
            logger.debug(f"Relationship type {container_name} has no fields")
            return relationships

        prefix = self.convention.container_field(direction)
        for rel_field in container.fields:
            slot_type_name = rel_field.type.unwrapped_name if rel_field.type else None
            target = self._resolve_target(types, slot_type_name)
            if target is None:
                logger.debug(
                    f"Could not resolve target entity for {source_entity}.{prefix}.{rel_field.name}"
                )
                continue
            relationships.append(
                EntityRelationship(
                    source_entity=source_entity,
                    target_entity=target,
                    relationship_type=rel_field.name,
                    direction=direction,
                    field_name=f"{prefix}.{rel_field.name}",
                )
            )
        return relationships

    def _resolve_target(
        self, types: Mapping[str, TypeDefinition], slot_type_name: Optional[str]
    ) -> Optional[str]:
        """Return the first transliterated field of the slot type that names an entity."""
        if slot_type_name is None:
            return None
        slot_type = types.get(slot_type_name)
        if slot_type is None:
            logger.debug(f"Relationship slot type '{slot_type_name}' not found in schema")
            return None

        for candidate in slot_type.fields:
            entity_name = normalized_name_to_entity_name(
                candidate.name,
                acronyms=self.convention.acronyms,
                name_root=self.convention.name_root,
                type_suffix=self.convention.type_suffix,
            )
            if entity_name is not None and entity_name in types:
                return entity_name
            logger.debug(f"Field '{candidate.name}' -> '{entity_name}' does not resolve")
        return None


def build_relationship_graph(
    types: Mapping[str, TypeDefinition],
    convention: Optional[EntityNamingConvention] = None,
) -> Dict[str, List[EntityRelationship]]:
    """Convenience wrapper around RelationshipGraphBuilder.build."""
    return RelationshipGraphBuilder(convention).build(types)
