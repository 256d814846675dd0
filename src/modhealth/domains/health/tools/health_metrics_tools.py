"""MCP tools for aggregated health records and per-variable statistics.

Aggregation tools read through the cached metrics service. Unit tools
are pure lookups against the static unit table.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from modhealth.domains.health.connectors import CatalogUnavailableError
from modhealth.domains.health.connectors.samples import summarize_daily_samples
from modhealth.domains.health.units.registry import (
    are_units_convertible,
    classify_unit as classify_unit_info,
    configure_unit_for_new_variable,
    convert_preview,
)

if TYPE_CHECKING:
    from modhealth.domains.health.domain_logic.record_models import UnifiedHealthRecord
    from modhealth.domains.health.domain_logic.service import HealthMetricsService

logger = logging.getLogger(__name__)


def _unavailable(exc: CatalogUnavailableError) -> str:
    return json.dumps({
        "status": "error",
        "message": f"Health store unavailable: {exc}",
    })


def _record_payload(record: UnifiedHealthRecord) -> dict:
    data = record.as_dict()
    if record.samples:
        data["daily_samples"] = summarize_daily_samples(record.samples)
    return data


def register_health_metrics_tools(
    mcp: FastMCP,
    service: HealthMetricsService,
) -> None:
    """Register aggregation and statistics tools on the MCP server."""

    @mcp.tool
    async def aggregate_health_records(
        ctx: Context,
        user_id: str,
        since: str | None = None,
        until: str | None = None,
        refresh: bool = False,
    ) -> str:
        """Merge wearable, scale and manual records for a user.

        A source that cannot be read contributes no records; its status
        shows why. Wearable records carrying heart-rate samples include a
        per-day min/average/count roll-up under ``daily_samples``. Dates
        are ISO ``YYYY-MM-DD`` and inclusive.

        Args:
            user_id: The user whose records to aggregate.
            since: Optional earliest date.
            until: Optional latest date.
            refresh: Bypass the cache and run a fresh pass.
        """
        start_time = time.monotonic()
        try:
            result = await service.records(user_id, since=since, until=until, refresh=refresh)
        except CatalogUnavailableError as exc:
            return _unavailable(exc)

        logger.info(
            "aggregate_health_records returned %d records in %.1f ms",
            len(result.records), (time.monotonic() - start_time) * 1000,
        )
        return json.dumps({
            "status": "ok",
            "total_records": len(result.records),
            "sources": result.sources,
            "records": [_record_payload(r) for r in result.records],
        }, indent=2)

    @mcp.tool
    async def variable_statistics(
        ctx: Context,
        user_id: str,
        variable: str | None = None,
        since: str | None = None,
        until: str | None = None,
    ) -> str:
        """Average, range, trend, streak and weekly pattern per variable.

        Args:
            user_id: The user whose records to analyze.
            variable: Optional variable slug; all variables when omitted.
            since: Optional earliest date.
            until: Optional latest date.
        """
        try:
            if variable is not None:
                stats = await service.variable_stats(user_id, variable, since=since, until=until)
                return json.dumps({
                    "status": "ok",
                    "variable": variable,
                    "stats": stats.as_dict(),
                }, indent=2)

            all_stats = await service.all_variable_stats(user_id, since=since, until=until)
        except CatalogUnavailableError as exc:
            return _unavailable(exc)

        return json.dumps({
            "status": "ok",
            "variables": [
                {
                    "slug": slug,
                    "label": canonical.label,
                    "stats": stats.as_dict(),
                }
                for slug, (canonical, stats) in all_stats.items()
            ],
        }, indent=2)

    @mcp.tool
    async def variable_correlations(
        ctx: Context,
        user_id: str,
        since: str | None = None,
        until: str | None = None,
        min_points: int = 5,
    ) -> str:
        """Pearson correlations between variables logged on the same days.

        Args:
            user_id: The user whose records to analyze.
            since: Optional earliest date.
            until: Optional latest date.
            min_points: Minimum shared days for a pair to be reported.
        """
        try:
            correlations = await service.correlations(
                user_id, since=since, until=until, min_points=min_points
            )
        except CatalogUnavailableError as exc:
            return _unavailable(exc)

        return json.dumps({
            "status": "ok",
            "correlations": [c.as_dict() for c in correlations],
        }, indent=2)

    @mcp.tool
    def invalidate_health_cache(user_id: str) -> str:
        """Drop cached aggregation results so the next request re-fetches.

        Args:
            user_id: The user whose cached results to drop.
        """
        dropped = service.invalidate(user_id)
        return json.dumps({"status": "ok", "invalidated": dropped})


def register_unit_tools(mcp: FastMCP) -> None:
    """Register unit classification and conversion preview tools."""

    @mcp.tool
    def classify_unit(unit: str) -> str:
        """Category and convertible units for a unit symbol.

        Args:
            unit: Unit symbol, e.g. 'kg' or '°F'.
        """
        return json.dumps(classify_unit_info(unit).as_dict(), indent=2)

    @mcp.tool
    def configure_variable_unit(unit: str, data_type: str = "continuous") -> str:
        """Canonical storage unit and convertible set for a new variable.

        Args:
            unit: The unit the variable will be logged in.
            data_type: 'continuous', 'categorical' or 'boolean'.
        """
        return json.dumps(configure_unit_for_new_variable(unit, data_type).as_dict(), indent=2)

    @mcp.tool
    def preview_unit_conversion(value: float, from_unit: str, to_unit: str) -> str:
        """Preview a value in another unit. Unknown pairs return the value unchanged.

        Args:
            value: The value to convert.
            from_unit: Unit the value is in.
            to_unit: Unit to show it in.
        """
        outcome = convert_preview(value, from_unit, to_unit)
        return json.dumps({
            "status": outcome.status.value,
            "same_group": are_units_convertible(from_unit, to_unit),
            "value": outcome.value,
            "unit": outcome.unit,
            "display": outcome.format(),
        })
