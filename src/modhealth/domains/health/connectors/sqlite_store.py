"""RecordStore backed by the SQLite health repository."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from modhealth.core.storage.database import DatabaseError
from modhealth.core.storage.repository import HealthRepository, RepositoryError
from modhealth.domains.health.connectors import RecordFilters, StoreQueryError

logger = logging.getLogger(__name__)


class SQLiteRecordStore:
    """Adapts :class:`HealthRepository` to the async :class:`RecordStore` protocol.

    Repository and driver errors surface as :class:`StoreQueryError` so the
    fetchers can apply their fallback policy.
    """

    def __init__(self, repository: HealthRepository) -> None:
        self._repo = repository

    async def query_records(
        self,
        table: str,
        filters: RecordFilters,
        *,
        offset: int,
        limit: int,
        enriched: bool,
    ) -> list[dict[str, Any]]:
        try:
            return self._repo.query_records(
                table,
                user_id=filters.user_id,
                since=filters.since,
                until=filters.until,
                offset=offset,
                limit=limit,
                enriched=enriched,
            )
        except (sqlite3.Error, RepositoryError, DatabaseError) as exc:
            raise StoreQueryError(f"{table} query failed: {exc}") from exc

    async def query_variable_catalog(self, *, active_only: bool = True) -> list[dict[str, Any]]:
        try:
            return self._repo.query_variable_catalog(active_only=active_only)
        except (sqlite3.Error, DatabaseError) as exc:
            raise StoreQueryError(f"variable catalog query failed: {exc}") from exc
