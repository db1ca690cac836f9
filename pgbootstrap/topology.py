"""Replication topology classification for an established pool."""

from __future__ import annotations

import logging
from typing import Any

from .models import TopologyCheck, TopologyResult

LOG = logging.getLogger(__name__)

REPLICATION_QUERY = "SELECT EXISTS (SELECT 1 FROM pg_stat_replication)"


class TopologyChecker:
    """Classifies a pool as standalone or part of a replication group.

    The check is advisory: query failures fall back to ``STANDALONE`` and are
    reported on :attr:`TopologyCheck.error` instead of being raised.
    """

    def __init__(self, query: str | None = None) -> None:
        self._query = query or REPLICATION_QUERY

    async def check(self, pool: Any) -> TopologyCheck:
        try:
            async with pool.acquire() as conn:
                has_replicas = await conn.fetchval(self._query)
        except Exception as exc:
            LOG.warning("Error checking replication configuration: %s", exc)
            return TopologyCheck(result=TopologyResult.STANDALONE, error=str(exc) or exc.__class__.__name__)
        if has_replicas:
            return TopologyCheck(result=TopologyResult.REPLICA_SET_MEMBER)
        return TopologyCheck(result=TopologyResult.STANDALONE)

    async def classify(self, pool: Any) -> TopologyResult:
        return (await self.check(pool)).result


__all__ = ["REPLICATION_QUERY", "TopologyChecker"]
