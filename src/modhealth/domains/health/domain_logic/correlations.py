"""Pairwise Pearson correlations between variables logged on the same days."""

from __future__ import annotations

import itertools
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import stats as sp_stats

from modhealth.domains.health.domain_logic.record_models import UnifiedHealthRecord

logger = logging.getLogger(__name__)

MIN_COMMON_POINTS = 5


@dataclass
class Correlation:
    variable_a: str
    variable_b: str
    coefficient: float
    p_value: float
    data_points: int

    @property
    def strength(self) -> str:
        magnitude = abs(self.coefficient)
        if magnitude >= 0.7:
            return "strong"
        if magnitude >= 0.3:
            return "moderate"
        if magnitude >= 0.1:
            return "weak"
        return "none"

    @property
    def direction(self) -> str:
        return "positive" if self.coefficient > 0 else "negative"

    def as_dict(self, *, digits: int = 4) -> dict[str, Any]:
        return {
            "variable_a": self.variable_a,
            "variable_b": self.variable_b,
            "coefficient": round(self.coefficient, digits),
            "p_value": round(self.p_value, digits),
            "data_points": self.data_points,
            "strength": self.strength,
            "direction": self.direction,
        }


def compute_correlations(
    records: Iterable[UnifiedHealthRecord],
    *,
    min_points: int = MIN_COMMON_POINTS,
) -> list[Correlation]:
    """Correlate every pair of variables over the calendar days both were logged.

    Each variable keeps one value per day (the last one seen). Pairs with
    fewer than ``min_points`` shared days are skipped. ``p_value`` is the
    two-sided p-value from :func:`scipy.stats.pearsonr`.

    Returns:
        Correlations sorted by absolute coefficient, strongest first.
    """
    by_variable: dict[str, dict[str, float]] = {}
    for record in records:
        if not math.isfinite(record.value):
            continue
        day = record.date[:10]
        if not day:
            continue
        by_variable.setdefault(record.variable.slug, {})[day] = record.value

    eligible = sorted(slug for slug, days in by_variable.items() if len(days) >= min_points)

    results: list[Correlation] = []
    for slug_a, slug_b in itertools.combinations(eligible, 2):
        days_a = by_variable[slug_a]
        days_b = by_variable[slug_b]
        common = sorted(days_a.keys() & days_b.keys())
        if len(common) < min_points:
            continue
        r, p = pearson([days_a[d] for d in common], [days_b[d] for d in common])
        results.append(Correlation(
            variable_a=slug_a,
            variable_b=slug_b,
            coefficient=r,
            p_value=p,
            data_points=len(common),
        ))

    results.sort(key=lambda c: abs(c.coefficient), reverse=True)
    logger.debug("Computed %d correlations across %d variables", len(results), len(eligible))
    return results


def pearson(xs: list[float], ys: list[float]) -> tuple[float, float]:
    """Pearson r and two-sided p-value; ``(0.0, 1.0)`` when undefined.

    Undefined covers mismatched or too-short series and a constant series,
    which has no variance to correlate.
    """
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0, 1.0
    if np.std(xs) < 1e-10 or np.std(ys) < 1e-10:
        return 0.0, 1.0
    r, p = sp_stats.pearsonr(xs, ys)
    return float(r), float(p)
