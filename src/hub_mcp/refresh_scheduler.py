# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Scheduled schema refresh with a startup warm-up.

A daemon thread performs one warm-up load shortly after start, then calls
SchemaCache.refresh() at every fire time of a cron expression (default: daily
at 2 AM local time). Refreshes go through the cache's single-flight guard, so a
scheduled refresh that overlaps a caller-triggered one joins it instead of
issuing a second introspection call.

Failures are logged and the thread keeps running; the previous snapshot stays
in service until a later refresh succeeds.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter

from hub_mcp.schema_cache import SchemaCache

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_CRON = "0 2 * * *"


class SchemaRefreshScheduler:
    """Background refresher for a SchemaCache.

    Usage:
        scheduler = SchemaRefreshScheduler(cache, cron_expression="0 2 * * *")
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        cache: SchemaCache,
        cron_expression: str = DEFAULT_REFRESH_CRON,
        warmup_delay_seconds: float = 5.0,
        enable_warmup: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize scheduler.

        Args:
            cache: Cache to refresh.
            cron_expression: When to refresh (croniter syntax).
            warmup_delay_seconds: Delay before the startup load.
            enable_warmup: Whether to load once at startup.
            clock: Returns the current local time, injectable for tests.

        Raises:
            ValueError: If cron_expression is not valid.
        """
        if not croniter.is_valid(cron_expression):
            raise ValueError(f"Invalid cron expression: {cron_expression!r}")

        self.cache = cache
        self.cron_expression = cron_expression
        self.warmup_delay_seconds = warmup_delay_seconds
        self.enable_warmup = enable_warmup
        self._clock = clock

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def next_run_time(self, after: Optional[datetime] = None) -> datetime:
        """Next fire time of the cron expression strictly after ``after`` (default: now)."""
        base = after or self._clock()
        next_time: datetime = croniter(self.cron_expression, base).get_next(datetime)
        return next_time

    def run_warmup(self) -> bool:
        """Load the schema and relationship graph once. Returns True on success."""
        logger.info("Warming up schema cache")
        try:
            snapshot = self.cache.get_schema()
        except Exception as e:
            logger.error(f"Schema warm-up failed: {e}")
            return False
        logger.info(
            f"Schema warm-up complete: {snapshot.type_count} types, "
            f"{len(snapshot.relationships)} entities with relationships"
        )
        return True

    def run_refresh(self) -> bool:
        """Perform one scheduled refresh. Returns True on success."""
        logger.info("Starting scheduled schema cache refresh")
        try:
            snapshot = self.cache.refresh()
        except Exception as e:
            logger.error(f"Scheduled schema refresh failed: {e}")
            return False
        logger.info(f"Scheduled schema refresh complete, generation {snapshot.generation}")
        return True

    def start(self) -> None:
        """Start the background thread.

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self.is_running():
            raise RuntimeError("SchemaRefreshScheduler is already running")

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="schema-refresh", daemon=True
        )
        self._thread.start()
        logger.info(f"Schema refresh scheduler started (cron='{self.cron_expression}')")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background thread, waiting up to ``timeout`` seconds."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            logger.info("Schema refresh scheduler stopped")
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        if self.enable_warmup:
            if self._stop_event.wait(self.warmup_delay_seconds):
                return
            self.run_warmup()

        while not self._stop_event.is_set():
            now = self._clock()
            next_time = self.next_run_time(now)
            wait_seconds = max(0.0, (next_time - now).total_seconds())
            logger.debug(f"Next schema refresh at {next_time.isoformat()}")
            if self._stop_event.wait(wait_seconds):
                return
            self.run_refresh()
