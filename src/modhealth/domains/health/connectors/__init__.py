"""Health data connectors — the store interface the aggregation engine reads from."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class StoreQueryError(Exception):
    """A single store query failed. Fetchers recover from this; nothing else."""


class CatalogUnavailableError(Exception):
    """The variable catalog could not be read; an aggregation pass cannot start."""


class HealthSource(str, enum.Enum):
    """The three independently fetched stores."""

    WEARABLE = "wearable"
    SCALE = "scale"
    MANUAL = "manual"

    @property
    def table(self) -> str:
        return _SOURCE_TABLES[self]


_SOURCE_TABLES = {
    HealthSource.WEARABLE: "wearable_variable_logs",
    HealthSource.SCALE: "scale_variable_logs",
    HealthSource.MANUAL: "manual_logs",
}


@dataclass(frozen=True)
class RecordFilters:
    """User scope and optional inclusive date range for one aggregation pass."""

    user_id: str
    since: str | None = None
    until: str | None = None


@runtime_checkable
class RecordStore(Protocol):
    """Queryable store holding the per-source tables and the variable catalog.

    The engine only reads. Implementations raise :class:`StoreQueryError`
    for any failed query.
    """

    async def query_records(
        self,
        table: str,
        filters: RecordFilters,
        *,
        offset: int,
        limit: int,
        enriched: bool,
    ) -> list[dict[str, Any]]:
        """One page of ``table`` ordered by date descending.

        With ``enriched`` each row carries a joined ``variables`` dict
        (``id``, ``slug``, ``label``) or None.
        """
        ...

    async def query_variable_catalog(self, *, active_only: bool = True) -> list[dict[str, Any]]:
        """Catalog rows as ``{id, slug, label}`` dicts."""
        ...
