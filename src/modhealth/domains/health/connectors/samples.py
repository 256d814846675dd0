"""Per-timestamp event samples carried by wearable rows.

A wearable payload can repeat a timestamp when the provider re-sends a
window. Samples are collapsed on their timestamp key with the later write
winning, and kept newest first.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections.abc import Iterable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

TIMESTAMP_KEY = "timestamp"


def collapse_samples(
    samples: Iterable[Mapping[str, Any]] | None,
    *,
    key: str = TIMESTAMP_KEY,
) -> list[dict[str, Any]]:
    """Deduplicate samples by ``key``; later entries overwrite earlier ones.

    Samples without the key are dropped. Result is sorted descending by key.
    """
    if not samples:
        return []

    by_key: dict[str, dict[str, Any]] = {}
    dropped = 0
    for sample in samples:
        if not isinstance(sample, Mapping) or not sample.get(key):
            dropped += 1
            continue
        by_key[str(sample[key])] = dict(sample)

    if dropped:
        logger.debug("Dropped %d samples without a %r key", dropped, key)
    return [by_key[k] for k in sorted(by_key, reverse=True)]


def summarize_daily_samples(
    samples: Iterable[Mapping[str, Any]] | None,
    *,
    value_key: str = "bpm",
    key: str = TIMESTAMP_KEY,
) -> dict[str, dict[str, float | int]]:
    """Roll samples up per calendar day: ``{day: {min, average, count}}``.

    Uses the collapsed sample set, so duplicated timestamps count once.
    Non-numeric values are skipped.
    """
    by_day: dict[str, list[float]] = {}
    for sample in collapse_samples(samples, key=key):
        value = sample.get(value_key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            continue
        day = str(sample[key]).split("T")[0]
        by_day.setdefault(day, []).append(float(value))

    return {
        day: {
            "min": min(values),
            "average": statistics.mean(values),
            "count": len(values),
        }
        for day, values in sorted(by_day.items(), reverse=True)
    }
