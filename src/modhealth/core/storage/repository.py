"""Health data repository — inserts and page queries over the reference store.

The repository mediates between row models (WearableLog, etc.) and the
SQLite database. It implements the query operations the aggregation
engine consumes: plain and catalog-enriched page scans per source table,
and the variable catalog listing. Raw sample payloads are encrypted with
FieldEncryptor on write and decrypted on read.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from modhealth.core.storage.database import HealthDatabase
from modhealth.core.storage.encryption import EncryptionError, FieldEncryptor
from modhealth.core.storage.models import (
    CatalogVariable,
    ManualLog,
    ScaleLog,
    WearableLog,
)

logger = logging.getLogger(__name__)

# table -> (reference column on the table, catalog column it joins to)
SOURCE_TABLES: dict[str, tuple[str, str]] = {
    "wearable_variable_logs": ("variable_id", "id"),
    "scale_variable_logs": ("variable", "slug"),
    "manual_logs": ("variable_id", "id"),
}


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class HealthRepository:
    """Row-level access to the variable catalog and the three source tables.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        repo = HealthRepository(db, FieldEncryptor(key))

        repo.add_variable(CatalogVariable(id="...", slug="weight", label="Weight"))
        rows = repo.query_records("scale_variable_logs", user_id="u1",
                                  offset=0, limit=1000, enriched=True)
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Variable catalog
    # ------------------------------------------------------------------

    def add_variable(self, variable: CatalogVariable) -> str:
        """Insert or update a catalog entry and return its id."""
        conn = self._db.connection
        vid = variable.id or self._new_id()
        conn.execute(
            """INSERT INTO variables (id, slug, label, unit, is_active)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   slug = excluded.slug,
                   label = excluded.label,
                   unit = excluded.unit,
                   is_active = excluded.is_active""",
            (vid, variable.slug, variable.label, variable.unit, int(variable.is_active)),
        )
        conn.commit()
        return vid

    def query_variable_catalog(self, *, active_only: bool = True) -> list[dict[str, Any]]:
        """List catalog entries as ``{id, slug, label, unit}`` dicts."""
        query = "SELECT id, slug, label, unit FROM variables"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY slug"
        rows = self._db.connection.execute(query).fetchall()
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Source inserts
    # ------------------------------------------------------------------

    def add_wearable_log(self, log: WearableLog) -> str:
        """Persist a wearable measurement, encrypting its sample payload."""
        lid = log.id or self._new_id()
        self._db.connection.execute(
            """INSERT INTO wearable_variable_logs
               (id, user_id, date, variable_id, value, samples_enc, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                lid,
                log.user_id,
                log.date,
                log.variable_id,
                _to_text(log.value),
                self._enc.encrypt(log.samples),
                log.created_at or self._now_iso(),
            ),
        )
        self._db.connection.commit()
        return lid

    def add_scale_log(self, log: ScaleLog) -> str:
        """Persist a smart-scale measurement."""
        lid = log.id or self._new_id()
        self._db.connection.execute(
            """INSERT INTO scale_variable_logs
               (id, user_id, date, variable, value, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                lid,
                log.user_id,
                log.date,
                log.variable,
                _to_text(log.value),
                log.created_at or self._now_iso(),
            ),
        )
        self._db.connection.commit()
        return lid

    def add_manual_log(self, log: ManualLog) -> str:
        """Persist a manual/routine/auto log. The source tag is stored as JSON."""
        lid = log.id or self._new_id()
        self._db.connection.execute(
            """INSERT INTO manual_logs
               (id, user_id, date, variable_id, variable, value, source_json, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                lid,
                log.user_id,
                log.date,
                log.variable_id,
                log.variable,
                _to_text(log.value),
                json.dumps(log.source) if log.source is not None else None,
                log.created_at or self._now_iso(),
            ),
        )
        self._db.connection.commit()
        return lid

    # ------------------------------------------------------------------
    # Page scans
    # ------------------------------------------------------------------

    def query_records(
        self,
        table: str,
        *,
        user_id: str,
        since: str | None = None,
        until: str | None = None,
        offset: int = 0,
        limit: int = 1000,
        enriched: bool = False,
    ) -> list[dict[str, Any]]:
        """Return one page of a source table, newest date first.

        Args:
            table: One of :data:`SOURCE_TABLES`.
            user_id: Owner of the rows.
            since: Inclusive lower bound on ``date``.
            until: Inclusive upper bound on ``date``.
            offset: First row of the page.
            limit: Page length.
            enriched: Join the variable catalog; each row then carries a
                ``variables`` dict (``id``, ``slug``, ``label``) or None.

        Returns:
            Row dicts with the table's columns. Wearable rows carry
            decrypted ``samples`` instead of ``samples_enc``; manual rows
            carry the decoded ``source`` tag instead of ``source_json``.
        """
        if table not in SOURCE_TABLES:
            raise RepositoryError(
                f"Invalid source table: {table!r}. Valid: {sorted(SOURCE_TABLES)}"
            )
        if offset < 0 or limit <= 0:
            raise RepositoryError(f"Invalid page window: offset={offset}, limit={limit}")

        ref_column, catalog_column = SOURCE_TABLES[table]
        conditions = ["t.user_id = ?"]
        params: list[Any] = [user_id]
        if since:
            conditions.append("t.date >= ?")
            params.append(since)
        if until:
            conditions.append("t.date <= ?")
            params.append(until)

        # Table and column names come from SOURCE_TABLES, validated above
        if enriched:
            query = (
                f"SELECT t.*, v.id AS v_id, v.slug AS v_slug, v.label AS v_label "
                f"FROM {table} t LEFT JOIN variables v ON t.{ref_column} = v.{catalog_column}"
            )
        else:
            query = f"SELECT t.* FROM {table} t"
        query += f" WHERE {' AND '.join(conditions)} ORDER BY t.date DESC, t.id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_dict(row, enriched=enriched) for row in rows]

    def count_records(self, table: str, *, user_id: str | None = None) -> int:
        """Count rows of a source table, optionally for one user."""
        if table not in SOURCE_TABLES:
            raise RepositoryError(f"Invalid source table: {table!r}")
        if user_id:
            row = self._db.connection.execute(
                f"SELECT COUNT(*) FROM {table} WHERE user_id = ?", (user_id,)
            ).fetchone()
        else:
            row = self._db.connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_dict(self, row: Any, *, enriched: bool) -> dict[str, Any]:
        data = dict(row)

        if "samples_enc" in data:
            token = data.pop("samples_enc")
            try:
                data["samples"] = self._enc.decrypt(token)
            except EncryptionError:
                logger.warning("Unreadable sample payload on row %s; dropping samples", data["id"])
                data["samples"] = None

        if "source_json" in data:
            raw = data.pop("source_json")
            try:
                data["source"] = json.loads(raw) if raw else None
            except (json.JSONDecodeError, TypeError):
                data["source"] = raw

        if enriched:
            vid = data.pop("v_id", None)
            slug = data.pop("v_slug", None)
            label = data.pop("v_label", None)
            data["variables"] = (
                {"id": vid, "slug": slug, "label": label} if vid is not None else None
            )
        return data


def _to_text(value: Any) -> str | None:
    """Values are stored as text; sources hand over numbers and strings alike."""
    if value is None:
        return None
    return str(value)
