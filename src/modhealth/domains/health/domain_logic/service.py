"""Pull-based health metrics service.

Callers ask for records or stats; the service runs an aggregation pass
only when the cache has nothing fresh for that user and date range.
Refresh timing belongs to the caller, through :meth:`invalidate` or the
cache TTL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from urllib.parse import quote

from modhealth.core.cache import TTLCache
from modhealth.domains.health.connectors.composite import (
    AggregationResult,
    HealthAggregator,
    group_by_variable,
)
from modhealth.domains.health.domain_logic.correlations import (
    MIN_COMMON_POINTS,
    Correlation,
    compute_correlations,
)
from modhealth.domains.health.domain_logic.metric_stats import compute_stats
from modhealth.domains.health.domain_logic.record_models import (
    CanonicalVariable,
    VariableStats,
)

logger = logging.getLogger(__name__)


class HealthMetricsService:
    """Caches aggregation passes per user and date range and derives stats from them.

    Usage::

        service = HealthMetricsService(HealthAggregator(store), TTLCache())
        stats = await service.variable_stats("user-1", "weight")
        service.invalidate("user-1")
    """

    def __init__(self, aggregator: HealthAggregator, cache: TTLCache) -> None:
        self._aggregator = aggregator
        self._cache = cache

    async def records(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
        refresh: bool = False,
    ) -> AggregationResult:
        """Aggregated records for a user, served from cache when fresh."""
        key = _cache_key(user_id, since, until)
        if not refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        result = await self._aggregator.aggregate_detailed(user_id, since=since, until=until)
        # Degraded passes are served once but not kept
        if result.degraded:
            self._cache.invalidate(key)
        else:
            self._cache.set(key, result)
        return result

    async def variable_stats(
        self,
        user_id: str,
        slug: str,
        *,
        since: str | None = None,
        until: str | None = None,
        now: datetime | None = None,
    ) -> VariableStats:
        """Stats for one variable; zero-valued if the user never logged it."""
        result = await self.records(user_id, since=since, until=until)
        groups = group_by_variable(result.records)
        return compute_stats(groups.get(slug, []), now=now)

    async def all_variable_stats(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, tuple[CanonicalVariable, VariableStats]]:
        """Stats for every variable the user has records for, keyed by slug."""
        result = await self.records(user_id, since=since, until=until)
        return {
            slug: (group[0].variable, compute_stats(group, now=now))
            for slug, group in sorted(group_by_variable(result.records).items())
        }

    async def correlations(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
        min_points: int = MIN_COMMON_POINTS,
    ) -> list[Correlation]:
        result = await self.records(user_id, since=since, until=until)
        return compute_correlations(result.records, min_points=min_points)

    def invalidate(self, user_id: str) -> int:
        """Forget every cached pass for a user; returns how many were dropped."""
        dropped = self._cache.invalidate_prefix(_user_prefix(user_id))
        logger.info("Invalidated %d cached aggregation(s) for user %s", dropped, user_id)
        return dropped


def _user_prefix(user_id: str) -> str:
    # Ids are percent-encoded, so one user's prefix never matches another's keys
    return f"records|{quote(user_id, safe='')}|"


def _cache_key(user_id: str, since: str | None, until: str | None) -> str:
    return f"{_user_prefix(user_id)}{since or ''}|{until or ''}"
