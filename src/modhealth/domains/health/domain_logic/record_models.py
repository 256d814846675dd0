"""Unified health record models and domain constants."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Two-half comparison threshold (percent) for up/down classification
TREND_THRESHOLD_PCT = 5.0

# A record extends the streak when within this many days of the running reference
STREAK_TOLERANCE_DAYS = 1.5

WEEKDAYS = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

# Placeholder when a manual log names no variable at all
UNKNOWN_VARIABLE = "unknown"


# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------

class RecordSource(str, enum.Enum):
    """Where a unified record came from, decided once at normalization."""

    WEARABLE = "wearable"
    SCALE = "scale"
    MANUAL = "manual"
    ROUTINE = "routine"
    AUTO = "auto"


class Trend(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanonicalVariable:
    """Resolved variable identity shared by every record of one variable."""

    id: str
    slug: str
    label: str


@dataclass
class RawSourceRecord:
    """One measurement as read from a source store, before normalization.

    ``variable_ref`` is a UUID (wearable), a slug (scale), or a catalog id
    or free-text label (manual). ``enrichment`` is the joined catalog row
    when the enriched query succeeded.
    """

    record_id: str
    user_id: str
    date: str
    variable_ref: str | None
    value: Any
    created_at: str = ""
    source_tag: Any = None
    enrichment: dict[str, Any] | None = None
    samples: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class UnifiedHealthRecord:
    """A normalized record; ``value`` is always a float.

    ``samples`` holds the collapsed per-timestamp samples of wearable rows,
    newest first; other sources leave it empty.
    """

    id: str
    source: RecordSource
    variable: CanonicalVariable
    date: str
    value: float
    created_at: str = ""
    samples: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "variable": {
                "id": self.variable.id,
                "slug": self.variable.slug,
                "label": self.variable.label,
            },
            "date": self.date,
            "value": self.value,
            "created_at": self.created_at,
        }


# ---------------------------------------------------------------------------
# Derived statistics
# ---------------------------------------------------------------------------

@dataclass
class WeekdayAverage:
    day: str
    average: float | None
    has_logs: bool = False


@dataclass
class VariableStats:
    """Descriptive statistics for one variable. Recomputed on demand."""

    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    latest: float = 0.0
    trend: Trend = Trend.STABLE
    change_percentage: float = 0.0
    streak: int = 0
    total_logs: int = 0
    weekly_pattern: list[WeekdayAverage] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    def as_dict(self, *, digits: int = 4) -> dict[str, Any]:
        """Return a JSON-ready dict with values rounded to ``digits``."""
        return {
            "average": round(self.average, digits),
            "min": round(self.min, digits),
            "max": round(self.max, digits),
            "latest": round(self.latest, digits),
            "trend": self.trend.value,
            "change_percentage": round(self.change_percentage, digits),
            "streak": self.streak,
            "total_logs": self.total_logs,
            "weekly_pattern": [
                {
                    "day": w.day,
                    "average": round(w.average, digits) if w.average is not None else None,
                    "has_logs": w.has_logs,
                }
                for w in self.weekly_pattern
            ],
            "insights": list(self.insights),
        }
