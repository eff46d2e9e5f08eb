"""Read live resource state from a cluster backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from reclaim_guard.config.settings import Settings
from reclaim_guard.core.cluster import ClusterBackend
from reclaim_guard.core.retry import Sleep, call_with_backoff
from reclaim_guard.errors import NotFoundError
from reclaim_guard.models.resource import LiveResource, ResourceId

logger = logging.getLogger(__name__)


class StateFetcher:
    """Fetches live resources, retrying transient failures with backoff.

    A NotFoundError from the backend is not a failure here: the resource is
    reported as absent (None) and the diff engine treats that as drift.
    """

    def __init__(self, backend: ClusterBackend, settings: Settings, sleep: Sleep = asyncio.sleep):
        self.backend = backend
        self.settings = settings
        self._sleep = sleep

    async def fetch_one(self, rid: ResourceId) -> LiveResource | None:
        try:
            return await call_with_backoff(
                lambda: self.backend.get(rid),
                what=f"fetch {rid}",
                max_attempts=self.settings.max_attempts,
                base_seconds=self.settings.backoff_base_seconds,
                sleep=self._sleep,
            )
        except NotFoundError:
            logger.debug("%s not found in %s", rid, self.backend.description)
            return None

    async def fetch(self, ids: Iterable[ResourceId]) -> dict[ResourceId, LiveResource]:
        """Fetch every id; absent resources are left out of the mapping."""
        ids = list(ids)
        limit = asyncio.Semaphore(self.settings.concurrency)

        async def bounded(rid: ResourceId) -> LiveResource | None:
            async with limit:
                return await self.fetch_one(rid)

        results = await asyncio.gather(*(bounded(rid) for rid in ids))
        return {rid: live for rid, live in zip(ids, results) if live is not None}
