"""Bounded pagination over one source, with a degraded fallback path.

Each source is paged sequentially, newest date first, until a short page
comes back or the row ceiling is reached. If the catalog-enriched query
fails at any point, the partial result is discarded and the source is
paged again from offset 0 without the catalog join. If that fails too the
source contributes nothing to the pass; the failure is logged, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from modhealth.domains.health.connectors import (
    HealthSource,
    RecordFilters,
    RecordStore,
    StoreQueryError,
)
from modhealth.domains.health.connectors.samples import collapse_samples
from modhealth.domains.health.domain_logic.record_models import RawSourceRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_ROWS = 20000


@dataclass
class FetchResult:
    """Outcome of fetching one source for one pass.

    ``degraded`` is True when the enriched query failed and the degraded
    path was taken. ``failed`` is True when that path failed too.
    ``error`` holds the first failure message.
    """

    source: HealthSource
    records: list[RawSourceRecord] = field(default_factory=list)
    degraded: bool = False
    failed: bool = False
    error: str | None = None

    def status(self) -> dict[str, Any]:
        return {
            "records": len(self.records),
            "degraded": self.degraded,
            "failed": self.failed,
            "error": self.error,
        }


class PaginatedSourceFetcher:
    """Fetches every row of one source for a user, page by page.

    Usage::

        fetcher = PaginatedSourceFetcher(store, HealthSource.SCALE)
        result = await fetcher.fetch_all(RecordFilters(user_id="u1"))
    """

    def __init__(
        self,
        store: RecordStore,
        source: HealthSource,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if max_rows < page_size:
            raise ValueError("max_rows must be at least one page")
        self._store = store
        self._source = source
        self._page_size = page_size
        self._max_rows = max_rows

    @property
    def source(self) -> HealthSource:
        return self._source

    async def iter_pages(
        self,
        filters: RecordFilters,
        *,
        enriched: bool,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield raw pages until a short page or the row ceiling.

        Raises:
            StoreQueryError: A page request failed; iteration stops there.
        """
        offset = 0
        while True:
            page = await self._store.query_records(
                self._source.table,
                filters,
                offset=offset,
                limit=self._page_size,
                enriched=enriched,
            )
            yield page
            if len(page) < self._page_size:
                return
            offset += self._page_size
            if offset >= self._max_rows:
                logger.warning(
                    "%s fetch stopped at the %d-row ceiling for user %s",
                    self._source.value, self._max_rows, filters.user_id,
                )
                return

    async def fetch_all(self, filters: RecordFilters) -> FetchResult:
        """Fetch the whole source; never raises."""
        try:
            rows = await self._collect(filters, enriched=True)
        except StoreQueryError as exc:
            logger.warning(
                "Enriched %s query failed (%s); retrying without catalog join",
                self._source.value, exc,
            )
            enriched_error = str(exc)
        else:
            return FetchResult(self._source, self._to_records(rows, enriched=True))

        try:
            rows = await self._collect(filters, enriched=False)
        except StoreQueryError as exc:
            logger.error(
                "Degraded %s query failed (%s); source contributes no records this pass",
                self._source.value, exc,
            )
            return FetchResult(
                self._source, [], degraded=True, failed=True, error=enriched_error or str(exc)
            )

        return FetchResult(
            self._source,
            self._to_records(rows, enriched=False),
            degraded=True,
            error=enriched_error,
        )

    async def _collect(self, filters: RecordFilters, *, enriched: bool) -> list[dict[str, Any]]:
        # Buffer is local to this call so a failed path leaves nothing behind
        rows: list[dict[str, Any]] = []
        async for page in self.iter_pages(filters, enriched=enriched):
            rows.extend(page)
        logger.debug(
            "Fetched %d %s rows (enriched=%s)", len(rows), self._source.value, enriched
        )
        return rows

    def _to_records(self, rows: list[dict[str, Any]], *, enriched: bool) -> list[RawSourceRecord]:
        return [self._to_record(row, enriched=enriched) for row in rows]

    def _to_record(self, row: dict[str, Any], *, enriched: bool) -> RawSourceRecord:
        if self._source is HealthSource.WEARABLE:
            ref = row.get("variable_id")
        elif self._source is HealthSource.SCALE:
            ref = row.get("variable")
        else:
            # Manual logs fall back to their free-text label
            ref = row.get("variable_id") or row.get("variable")

        return RawSourceRecord(
            record_id=str(row.get("id", "")),
            user_id=str(row.get("user_id", "")),
            date=str(row.get("date") or ""),
            variable_ref=ref,
            value=row.get("value"),
            created_at=str(row.get("created_at") or ""),
            source_tag=row.get("source") if self._source is HealthSource.MANUAL else None,
            enrichment=row.get("variables") if enriched else None,
            samples=collapse_samples(row.get("samples")),
        )
