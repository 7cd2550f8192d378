# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Breadth-first search for relationship paths between two entities.

Known limitation: an entity is expanded at most once per search, so a longer
alternate path that passes through an already-expanded entity by a different
relationship is not reported. Iteration follows relationship declaration
order, so results are deterministic for a given graph.
"""

import logging
from collections import deque
from typing import Deque, List, Mapping, Sequence, Set

from hub_mcp.models import EntityRelationship

logger = logging.getLogger(__name__)

MAX_PATHS = 5
MAX_DEPTH = 5
DEFAULT_DEPTH = 3

Path = List[EntityRelationship]


def clamp_depth(max_depth: int) -> int:
    """Clamp a caller-supplied depth to [1, MAX_DEPTH]."""
    return max(1, min(max_depth, MAX_DEPTH))


def find_paths(
    graph: Mapping[str, Sequence[EntityRelationship]],
    from_entity: str,
    to_entity: str,
    max_depth: int = DEFAULT_DEPTH,
) -> List[Path]:
    """Enumerate up to MAX_PATHS relationship sequences from one entity to another.

    Args:
        graph: Entity name -> outbound relationships.
        from_entity: Starting entity type name.
        to_entity: Target entity type name.
        max_depth: Maximum number of edges per path, clamped to [1, MAX_DEPTH].

    Returns:
        Paths in discovery order, shortest first.
    """
    depth = clamp_depth(max_depth)
    paths: List[Path] = []
    queue: Deque[Path] = deque()
    visited: Set[str] = {from_entity}

    for rel in graph.get(from_entity, ()):
        if rel.target_entity == to_entity:
            paths.append([rel])
        else:
            queue.append([rel])

    while queue and len(paths) < MAX_PATHS:
        current_path = queue.popleft()
        if len(current_path) >= depth:
            continue

        current_entity = current_path[-1].target_entity
        if current_entity in visited:
            continue
        visited.add(current_entity)

        for next_rel in graph.get(current_entity, ()):
            new_path = current_path + [next_rel]
            if next_rel.target_entity == to_entity:
                paths.append(new_path)
            elif len(new_path) < depth:
                queue.append(new_path)

    if len(paths) > MAX_PATHS:
        paths = paths[:MAX_PATHS]

    logger.debug(
        f"Found {len(paths)} paths from {from_entity} to {to_entity} (max_depth={depth})"
    )
    return paths
