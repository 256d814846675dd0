"""Per-variable descriptive statistics from unified health records.

Everything here is a pure, synchronous transformation of already-fetched
records. Malformed input degrades to zero-valued stats instead of raising.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

from modhealth.domains.health.domain_logic.record_models import (
    STREAK_TOLERANCE_DAYS,
    TREND_THRESHOLD_PCT,
    WEEKDAYS,
    Trend,
    UnifiedHealthRecord,
    VariableStats,
    WeekdayAverage,
)

logger = logging.getLogger(__name__)

# Insight thresholds
STRONG_TREND_PCT = 10.0
LONG_STREAK_DAYS = 7
LATEST_DEVIATION = 0.2
WEEKDAY_SPREAD = 1.3

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def compute_stats(
    records: Iterable[UnifiedHealthRecord],
    *,
    now: datetime | None = None,
) -> VariableStats:
    """Compute :class:`VariableStats` for the records of one variable.

    Records need not be sorted; they are ordered by time here (see
    :func:`chronological_key`).

    Args:
        records: Unified records, all for the same canonical variable.
        now: Reference instant for the streak. Defaults to the current time.

    Returns:
        Stats with raw (unrounded) floats. Zero-valued with a ``stable``
        trend when no record carries a usable number.
    """
    numeric = sorted(
        (r for r in records if _is_number(r.value)),
        key=chronological_key,
    )
    if not numeric:
        return VariableStats(weekly_pattern=weekly_pattern([]))

    values = [float(r.value) for r in numeric]
    trend, change = _two_half_trend(values)

    stats = VariableStats(
        average=statistics.fmean(values),
        min=min(values),
        max=max(values),
        latest=values[-1],
        trend=trend,
        change_percentage=change,
        streak=compute_streak([r.date for r in numeric], now=now),
        total_logs=len(values),
        weekly_pattern=weekly_pattern(numeric),
    )
    stats.insights = generate_insights(stats)
    return stats


def _two_half_trend(values: Sequence[float]) -> tuple[Trend, float]:
    midpoint = len(values) // 2
    first_half = values[:midpoint]
    second_half = values[midpoint:]
    if not first_half or not second_half:
        return Trend.STABLE, 0.0

    first_mean = statistics.fmean(first_half)
    if first_mean == 0:
        return Trend.STABLE, 0.0

    change = (statistics.fmean(second_half) - first_mean) / first_mean * 100
    if change > TREND_THRESHOLD_PCT:
        return Trend.UP, change
    if change < -TREND_THRESHOLD_PCT:
        return Trend.DOWN, change
    return Trend.STABLE, change


def compute_streak(
    dates: Iterable[str],
    *,
    now: datetime | None = None,
    tolerance_days: float = STREAK_TOLERANCE_DAYS,
) -> int:
    """Count consecutive logged days ending at (or near) ``now``.

    Walks the dates newest first. A date extends the walk when it lies
    within ``tolerance_days`` of the running reference, which starts at
    ``now`` and moves to each accepted date. The first gap ends the walk.
    The streak is the number of distinct calendar days accepted, so several
    logs on one day count once. Unparsable dates are ignored.
    """
    reference = _as_utc(now) if now is not None else datetime.now(UTC)
    tolerance = timedelta(days=tolerance_days)

    instants = [i for i in (parse_record_date(raw) for raw in dates) if i is not None]

    days: set[str] = set()
    for instant in sorted(instants, reverse=True):
        if abs(reference - instant) > tolerance:
            break
        days.add(instant.date().isoformat())
        reference = instant
    return len(days)


def weekly_pattern(records: Iterable[UnifiedHealthRecord]) -> list[WeekdayAverage]:
    """Average value per weekday, Monday through Sunday.

    Days without a usable record have ``average=None`` and ``has_logs=False``.
    """
    buckets: dict[str, list[float]] = {day: [] for day in WEEKDAYS}
    for record in records:
        instant = parse_record_date(record.date)
        if instant is None or not _is_number(record.value):
            continue
        buckets[WEEKDAYS[instant.weekday()]].append(float(record.value))

    return [
        WeekdayAverage(
            day=day,
            average=statistics.fmean(values) if values else None,
            has_logs=bool(values),
        )
        for day, values in buckets.items()
    ]


def generate_insights(stats: VariableStats) -> list[str]:
    """Short plain-language observations about a variable's stats."""
    insights: list[str] = []

    if stats.trend is Trend.UP and stats.change_percentage > STRONG_TREND_PCT:
        insights.append(f"Strong upward trend: {stats.change_percentage:.1f}% increase")
    elif stats.trend is Trend.DOWN and stats.change_percentage < -STRONG_TREND_PCT:
        insights.append(f"Strong downward trend: {abs(stats.change_percentage):.1f}% decrease")
    elif stats.trend is Trend.STABLE:
        insights.append("Values have been stable over this period")

    if stats.streak > LONG_STREAK_DAYS:
        insights.append(f"Great consistency: {stats.streak} days logged in a row")
    elif stats.streak > 0:
        insights.append(f"Currently on a {stats.streak} day logging streak")

    if stats.latest > stats.average * (1 + LATEST_DEVIATION):
        insights.append(f"Latest value ({stats.latest:g}) is 20% above average")
    elif stats.latest < stats.average * (1 - LATEST_DEVIATION):
        insights.append(f"Latest value ({stats.latest:g}) is 20% below average")

    logged = [w for w in stats.weekly_pattern if w.has_logs and w.average is not None]
    if len(logged) > 1:
        highest = max(logged, key=lambda w: w.average)
        lowest = min(logged, key=lambda w: w.average)
        if highest.average > lowest.average * WEEKDAY_SPREAD:
            insights.append(f"{highest.day}s tend to be highest, {lowest.day}s lowest")

    return insights


def chronological_key(record: UnifiedHealthRecord) -> tuple:
    """Sort key ordering records by instant, then by creation instant.

    ISO strings with different UTC offsets compare by the instant they
    denote. Records whose date cannot be parsed sort first, among
    themselves by the raw strings.
    """
    instant = parse_record_date(record.date)
    created = parse_record_date(record.created_at)
    return (
        instant is not None,
        instant or _EPOCH,
        created or _EPOCH,
        record.date,
        record.created_at,
    )


def parse_record_date(raw: str | None) -> datetime | None:
    """Parse an ISO date or datetime; naive values are taken as UTC."""
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparsable record date %r", raw)
        return None
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
