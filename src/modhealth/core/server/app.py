"""Modular Health MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery (`fastmcp run ...app.py:mcp`)
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from modhealth.core.cache import TTLCache
from modhealth.core.config.settings import get_settings
from modhealth.core.storage.database import HealthDatabase
from modhealth.core.storage.encryption import EncryptionError, FieldEncryptor
from modhealth.core.storage.repository import SOURCE_TABLES, HealthRepository
from modhealth.domains.health.connectors import RecordStore
from modhealth.domains.health.connectors.composite import HealthAggregator
from modhealth.domains.health.connectors.sqlite_store import SQLiteRecordStore
from modhealth.domains.health.domain_logic.service import HealthMetricsService
from modhealth.domains.health.tools.health_metrics_tools import (
    register_health_metrics_tools,
    register_unit_tools,
)
from modhealth.domains.health.units.registry import unit_groups

logger = logging.getLogger(__name__)

SERVER_NAME = "Modular Health"
SERVER_VERSION = "0.1.0"


def create_app(
    *,
    store_override: RecordStore | None = None,
    repository_override: HealthRepository | None = None,
    cache_override: TTLCache | None = None,
) -> FastMCP:
    """Create and configure the Modular Health MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Resolves the record store (override, or the SQLite reference store)
    3. Builds the aggregator, cache and metrics service
    4. Registers all tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Modular Health — health metrics aggregation server. "
            "Merges wearable, scale and manual logs under a shared variable "
            "identity and reports per-variable statistics, correlations and "
            "unit conversions."
        ),
    )

    # --- Resolve the record store ---
    repository: HealthRepository | None = repository_override
    store: RecordStore | None = store_override
    if store is None and repository is None and settings.encryption_key:
        try:
            encryptor = FieldEncryptor(settings.encryption_key)
            health_db = HealthDatabase(settings.db_path)
            health_db.initialize()
            repository = HealthRepository(health_db, encryptor)
            logger.info(
                "Health store initialized: %s (schema v%d)",
                settings.db_path,
                health_db.get_schema_version(),
            )
        except EncryptionError as exc:
            logger.error("Failed to initialize storage: %s", exc)
    if store is None and repository is not None:
        store = SQLiteRecordStore(repository)

    if store is None:
        logger.info(
            "No record store configured. Set ENCRYPTION_KEY to enable the SQLite "
            "reference store; only unit tools are available."
        )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        status = {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "store_enabled": store is not None,
            "unit_groups": len(unit_groups()),
        }
        if repository is not None:
            status["records_stored"] = {
                table: repository.count_records(table) for table in SOURCE_TABLES
            }
        return status

    register_unit_tools(server)
    logger.info("Unit tools registered")

    if store is not None:
        cache = cache_override
        if cache is None:
            cache = TTLCache(
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            )
        aggregator = HealthAggregator(
            store,
            page_size=settings.fetch_page_size,
            max_rows=settings.fetch_max_rows,
        )
        register_health_metrics_tools(server, HealthMetricsService(aggregator, cache))
        logger.info("Health metrics tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
