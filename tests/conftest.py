"""Shared test fixtures for Modular Health tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from modhealth.domains.health.connectors import RecordFilters, StoreQueryError  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------

CATALOG: list[dict[str, Any]] = [
    {"id": "var-weight", "slug": "weight", "label": "Body Weight"},
    {"id": "var-hr", "slug": "resting_hr", "label": "Resting Heart Rate"},
    {"id": "var-mood", "slug": "mood", "label": "Mood"},
]


class FakeRecordStore:
    """Dict-backed RecordStore with per-table failure injection.

    ``fail_enriched`` / ``fail_degraded`` name tables whose enriched or
    plain queries raise. ``fail_after_pages`` makes a table fail once that
    many pages have been served on the enriched path.
    """

    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        catalog: list[dict[str, Any]] | None = None,
        *,
        fail_enriched: set[str] | None = None,
        fail_degraded: set[str] | None = None,
        fail_after_pages: dict[str, int] | None = None,
        fail_catalog: bool = False,
        always_full: set[str] | None = None,
    ) -> None:
        self.tables = tables or {}
        self.catalog = list(CATALOG) if catalog is None else catalog
        self.fail_enriched = fail_enriched or set()
        self.fail_degraded = fail_degraded or set()
        self.fail_after_pages = fail_after_pages or {}
        self.fail_catalog = fail_catalog
        self.always_full = always_full or set()
        self.requests: list[tuple[str, int, int, bool]] = []
        self.catalog_requests = 0

    def requests_for(self, table: str, *, enriched: bool | None = None) -> list[tuple[str, int, int, bool]]:
        return [
            r for r in self.requests
            if r[0] == table and (enriched is None or r[3] is enriched)
        ]

    async def query_records(
        self,
        table: str,
        filters: RecordFilters,
        *,
        offset: int,
        limit: int,
        enriched: bool,
    ) -> list[dict[str, Any]]:
        self.requests.append((table, offset, limit, enriched))

        if enriched and table in self.fail_enriched:
            raise StoreQueryError(f"{table}: join failed")
        if not enriched and table in self.fail_degraded:
            raise StoreQueryError(f"{table}: store unreachable")
        if enriched and table in self.fail_after_pages:
            served = len(self.requests_for(table, enriched=True)) - 1
            if served >= self.fail_after_pages[table]:
                raise StoreQueryError(f"{table}: connection reset")

        if table in self.always_full:
            return [
                {"id": f"{table}-{offset + i}", "user_id": filters.user_id,
                 "date": "2026-01-01", "value": "1"}
                for i in range(limit)
            ]

        rows = [
            dict(r) for r in self.tables.get(table, [])
            if r.get("user_id") == filters.user_id
            and (filters.since is None or r["date"] >= filters.since)
            and (filters.until is None or r["date"] <= filters.until)
        ]
        rows.sort(key=lambda r: (r["date"], str(r["id"])), reverse=True)
        page = rows[offset:offset + limit]
        if enriched:
            by_key = {c["id"]: c for c in self.catalog}
            by_key.update({c["slug"]: c for c in self.catalog})
            for row in page:
                ref = row.get("variable_id") or row.get("variable")
                entry = by_key.get(ref) if ref else None
                row["variables"] = dict(entry) if entry else None
        return page

    async def query_variable_catalog(self, *, active_only: bool = True) -> list[dict[str, Any]]:
        self.catalog_requests += 1
        if self.fail_catalog:
            raise StoreQueryError("catalog unavailable")
        return [dict(c) for c in self.catalog]


def make_rows(
    count: int,
    *,
    user_id: str = "user-1",
    ref_key: str = "variable_id",
    ref: str = "var-weight",
    start_day: int = 1,
    value: Any = "70",
    prefix: str = "row",
    **extra: Any,
) -> list[dict[str, Any]]:
    """Rows on consecutive January 2026 days starting at ``start_day``."""
    return [
        {
            "id": f"{prefix}-{i}",
            "user_id": user_id,
            "date": f"2026-01-{start_day + i:02d}",
            ref_key: ref,
            "value": value,
            "created_at": f"2026-01-{start_day + i:02d}T08:00:00",
            **extra,
        }
        for i in range(count)
    ]


@pytest.fixture
def store_factory():
    """The FakeRecordStore class, for tests that configure their own failures."""
    return FakeRecordStore


@pytest.fixture
def row_factory():
    """The make_rows helper."""
    return make_rows


@pytest.fixture
def fake_store() -> FakeRecordStore:
    """A store with five wearable and three scale rows for user-1."""
    return FakeRecordStore({
        "wearable_variable_logs": make_rows(5, ref="var-hr", value="58", prefix="w"),
        "scale_variable_logs": make_rows(3, ref_key="variable", ref="weight", prefix="s"),
        "manual_logs": [],
    })


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from modhealth.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from modhealth.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def health_repository(health_db, field_encryptor):
    """Create a HealthRepository backed by in-memory SQLite."""
    from modhealth.core.storage.repository import HealthRepository

    return HealthRepository(health_db, field_encryptor)


@pytest.fixture
def sqlite_store(health_repository):
    """RecordStore over the in-memory repository."""
    from modhealth.domains.health.connectors.sqlite_store import SQLiteRecordStore

    return SQLiteRecordStore(health_repository)
