# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Schema cache with single-flight loading and atomic snapshot swap.

The cache holds one reference to an immutable SchemaSnapshot. Readers take
that reference without locking and keep using it for as long as they like;
a refresh builds a complete new snapshot and replaces the reference in one
assignment, so no reader ever sees a half-updated schema.

Loading is single-flight: the first caller to find the cache missing, expired
or invalidated becomes the owner of a shared Future and performs the one
upstream introspection call; every other caller arriving meanwhile (lazy
readers, explicit refreshes and the scheduled refresh alike) waits on that
Future and receives the same snapshot or the same failure.

Thread Safety:
- _lock protects: _snapshot swaps, _in_flight, _invalidated, _invalidations
- The upstream call and parsing run outside the lock
- A failed load clears _in_flight so the next caller retries; the previous
  snapshot is never replaced by a failure
"""

import logging
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Callable, Dict, Optional

from hub_mcp.cache import LookupCache
from hub_mcp.exceptions import HubMcpError, SchemaUnavailableError
from hub_mcp.models import SchemaSnapshot
from hub_mcp.relationship_builder import EntityNamingConvention, RelationshipGraphBuilder
from hub_mcp.schema_parser import parse_introspection

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SchemaCache:
    """Lazily loaded, TTL-bounded holder of the current SchemaSnapshot.

    Usage:
        cache = SchemaCache(loader=executor.introspect, ttl=timedelta(hours=24))
        snapshot = cache.get_schema()
        type_def = snapshot.get_type("Entity_Tanzu_TAS_Space_Type")
    """

    def __init__(
        self,
        loader: Callable[[], Optional[Dict[str, Any]]],
        ttl: timedelta = timedelta(hours=24),
        max_lookup_entries: int = 100,
        convention: Optional[EntityNamingConvention] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize schema cache.

        Args:
            loader: Returns the introspection ``data`` payload. Called at most
                once per load, never concurrently with itself.
            ttl: Snapshot time-to-live (default: 24 hours).
            max_lookup_entries: Bound of each snapshot's lookup memo.
            convention: Entity naming convention for the relationship graph.
            clock: Returns the current aware datetime, injectable for tests.
        """
        self._loader = loader
        self._ttl = ttl
        self._max_lookup_entries = max_lookup_entries
        self._graph_builder = RelationshipGraphBuilder(convention)
        self._clock = clock

        self._snapshot: Optional[SchemaSnapshot] = None
        self._invalidated = False
        self._invalidations = 0
        self._in_flight: Optional["Future[SchemaSnapshot]"] = None
        self._generation = 0
        self._lock = Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def snapshot(self) -> Optional[SchemaSnapshot]:
        """Current snapshot without triggering a load (may be stale or None)."""
        return self._snapshot

    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def loaded_at(self) -> Optional[datetime]:
        snapshot = self._snapshot
        return snapshot.loaded_at if snapshot else None

    @property
    def generation(self) -> int:
        snapshot = self._snapshot
        return snapshot.generation if snapshot else 0

    def get_schema(self) -> SchemaSnapshot:
        """Return the current snapshot, loading it when missing, expired or invalidated.

        Raises:
            SchemaUnavailableError: No snapshot has ever loaded and this load failed.
            HubMcpError: A reload of an expired or invalidated snapshot failed.
        """
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot
        return self._load(force=False)

    def refresh(self) -> SchemaSnapshot:
        """Force a reload, joining any load already in flight."""
        logger.info("Refreshing schema cache")
        return self._load(force=True)

    def invalidate(self) -> None:
        """Mark the current snapshot stale; the next get_schema reloads."""
        with self._lock:
            self._invalidated = True
            self._invalidations += 1
        logger.info("Schema cache invalidated")

    def _is_fresh(self, snapshot: SchemaSnapshot) -> bool:
        if self._invalidated:
            return False
        return self._clock() - snapshot.loaded_at < self._ttl

    def _load(self, force: bool) -> SchemaSnapshot:
        with self._lock:
            if not force and self._snapshot is not None and self._is_fresh(self._snapshot):
                return self._snapshot

            future = self._in_flight
            is_owner = future is None
            invalidations_at_start = self._invalidations
            if future is None:
                future = Future()
                self._in_flight = future

        if not is_owner:
            logger.debug("Schema load already in flight, waiting for shared result")
            return future.result()

        try:
            snapshot = self._build_snapshot()
        except Exception as e:
            failure = self._classify_failure(e)
            with self._lock:
                self._in_flight = None
            future.set_exception(failure)
            if failure is e:
                raise
            raise failure from e

        with self._lock:
            self._snapshot = snapshot
            self._generation = snapshot.generation
            # An invalidation that arrived mid-load still applies to this snapshot
            if self._invalidations == invalidations_at_start:
                self._invalidated = False
            self._in_flight = None
        future.set_result(snapshot)

        logger.info(
            f"Schema loaded: {snapshot.type_count} types, "
            f"{len(snapshot.relationships)} entities with relationships, "
            f"generation {snapshot.generation}"
        )
        return snapshot

    def _build_snapshot(self) -> SchemaSnapshot:
        logger.info("Loading schema from upstream API")
        data = self._loader()
        types = parse_introspection(data)
        relationships = self._graph_builder.build(types)
        return SchemaSnapshot(
            types=types,
            relationships=relationships,
            loaded_at=self._clock(),
            generation=self._generation + 1,
            lookups=LookupCache(self._max_lookup_entries),
        )

    def _classify_failure(self, error: Exception) -> Exception:
        """Wrap a load failure for callers.

        With no snapshot ever loaded the failure becomes SchemaUnavailableError;
        otherwise typed upstream failures pass through unchanged.
        """
        if self._snapshot is None:
            logger.error(f"Schema load failed with no cached schema available: {error}")
            details: Dict[str, Any] = {"cause": type(error).__name__}
            if isinstance(error, HubMcpError):
                details.update(error.details)
                return SchemaUnavailableError(
                    f"Schema unavailable: {error.message}", errors=error.errors, details=details
                )
            return SchemaUnavailableError(f"Schema unavailable: {error}", details=details)

        logger.warning(f"Schema reload failed, keeping generation {self._generation}: {error}")
        if isinstance(error, HubMcpError):
            return error
        return SchemaUnavailableError(
            f"Schema reload failed: {error}", details={"cause": type(error).__name__}
        )
