"""Composite health aggregation — fans out the three sources and merges them.

Each source is fetched by its own :class:`PaginatedSourceFetcher` and the
three run concurrently. Rows are normalized into :class:`UnifiedHealthRecord`
and concatenated; no cross-source identity merging is attempted beyond what
the shared catalog already provides.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from modhealth.domains.health.connectors import (
    CatalogUnavailableError,
    HealthSource,
    RecordFilters,
    RecordStore,
    StoreQueryError,
)
from modhealth.domains.health.connectors.identity import VariableIdentityResolver
from modhealth.domains.health.connectors.pagination import (
    DEFAULT_MAX_ROWS,
    DEFAULT_PAGE_SIZE,
    FetchResult,
    PaginatedSourceFetcher,
)
from modhealth.domains.health.domain_logic.metric_stats import chronological_key
from modhealth.domains.health.domain_logic.record_models import (
    RawSourceRecord,
    RecordSource,
    UnifiedHealthRecord,
)

logger = logging.getLogger(__name__)

_SOURCE_ORDER = (HealthSource.WEARABLE, HealthSource.SCALE, HealthSource.MANUAL)

_TAGGED_SOURCES = {
    RecordSource.ROUTINE.value: RecordSource.ROUTINE,
    RecordSource.AUTO.value: RecordSource.AUTO,
}


def classify_source_tag(tag: Any) -> RecordSource:
    """Provenance of a manual-table row from its raw source tag.

    A list tag is judged by its first element. Only ``routine`` and ``auto``
    are recognized; anything else is a manual entry.
    """
    if isinstance(tag, (list, tuple)):
        tag = tag[0] if tag else None
    if isinstance(tag, str):
        return _TAGGED_SOURCES.get(tag.strip().lower(), RecordSource.MANUAL)
    return RecordSource.MANUAL


def coerce_value(raw: Any) -> float:
    """Numeric value of a raw measurement; 0.0 when absent or unparsable."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


@dataclass
class AggregationResult:
    """Merged records plus the per-source fetch outcome for one pass."""

    records: list[UnifiedHealthRecord] = field(default_factory=list)
    sources: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return any(s["degraded"] for s in self.sources.values())


class HealthAggregator:
    """Runs one aggregation pass over the three health sources.

    Usage::

        aggregator = HealthAggregator(store)
        records = await aggregator.aggregate("user-1")
        result = await aggregator.aggregate_detailed("user-1", since="2026-01-01")
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> None:
        self._store = store
        self._fetchers = [
            PaginatedSourceFetcher(store, source, page_size=page_size, max_rows=max_rows)
            for source in _SOURCE_ORDER
        ]

    async def aggregate(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
    ) -> list[UnifiedHealthRecord]:
        """All records for a user across every source that answered."""
        result = await self.aggregate_detailed(user_id, since=since, until=until)
        return result.records

    async def aggregate_detailed(
        self,
        user_id: str,
        *,
        since: str | None = None,
        until: str | None = None,
    ) -> AggregationResult:
        """Aggregate and report how each source fared.

        Raises:
            CatalogUnavailableError: The variable catalog could not be read.
                Individual source failures never raise.
        """
        try:
            catalog = await self._store.query_variable_catalog(active_only=True)
        except StoreQueryError as exc:
            logger.error("Variable catalog unavailable for user %s: %s", user_id, exc)
            raise CatalogUnavailableError(str(exc)) from exc

        # Built per pass; never shared between concurrent passes
        resolver = VariableIdentityResolver.from_catalog(catalog)
        filters = RecordFilters(user_id=user_id, since=since, until=until)

        fetched: list[FetchResult] = await asyncio.gather(
            *(fetcher.fetch_all(filters) for fetcher in self._fetchers)
        )

        result = AggregationResult()
        for outcome in fetched:
            result.records.extend(
                self._normalize(outcome.source, raw, resolver, degraded=outcome.degraded)
                for raw in outcome.records
            )
            result.sources[outcome.source.value] = outcome.status()

        logger.info(
            "Aggregated %d records for user %s (%s)",
            len(result.records),
            user_id,
            ", ".join(f"{name}={s['records']}" for name, s in result.sources.items()),
        )
        return result

    @staticmethod
    def _normalize(
        source: HealthSource,
        raw: RawSourceRecord,
        resolver: VariableIdentityResolver,
        *,
        degraded: bool,
    ) -> UnifiedHealthRecord:
        if source is HealthSource.MANUAL:
            provenance = classify_source_tag(raw.source_tag)
        else:
            provenance = RecordSource(source.value)

        return UnifiedHealthRecord(
            id=raw.record_id,
            source=provenance,
            variable=resolver.resolve(raw.variable_ref, raw.enrichment, degraded=degraded),
            date=raw.date,
            value=coerce_value(raw.value),
            created_at=raw.created_at,
            samples=raw.samples,
        )


def group_by_variable(
    records: Iterable[UnifiedHealthRecord],
) -> dict[str, list[UnifiedHealthRecord]]:
    """Group records by canonical slug, each group sorted ascending by time."""
    groups: dict[str, list[UnifiedHealthRecord]] = {}
    for record in records:
        groups.setdefault(record.variable.slug, []).append(record)
    for group in groups.values():
        group.sort(key=chronological_key)
    return groups
