"""Tests for pairwise variable correlations."""

from __future__ import annotations

import pytest

from modhealth.domains.health.domain_logic.correlations import (
    compute_correlations,
    pearson,
)
from modhealth.domains.health.domain_logic.record_models import (
    CanonicalVariable,
    RecordSource,
    UnifiedHealthRecord,
)


def _series(slug: str, values, *, start_day: int = 1) -> list[UnifiedHealthRecord]:
    variable = CanonicalVariable(id=f"var-{slug}", slug=slug, label=slug.title())
    return [
        UnifiedHealthRecord(
            id=f"{slug}-{i}",
            source=RecordSource.MANUAL,
            variable=variable,
            date=f"2026-03-{start_day + i:02d}",
            value=float(v),
        )
        for i, v in enumerate(values)
    ]


class TestPearson:
    def test_perfect_positive(self):
        r, p = pearson([1, 2, 3, 4], [2, 4, 6, 8])
        assert r == pytest.approx(1.0)
        assert p == pytest.approx(0.0, abs=1e-6)

    def test_perfect_negative(self):
        r, _ = pearson([1, 2, 3, 4], [8, 6, 4, 2])
        assert r == pytest.approx(-1.0)

    def test_matches_known_value(self):
        r, p = pearson([1, 2, 3, 4, 5], [2, 1, 4, 3, 5])
        assert r == pytest.approx(0.8)
        assert p == pytest.approx(0.1041, abs=1e-4)

    def test_returns_plain_floats(self):
        r, p = pearson([1, 2, 3, 4, 5], [2, 1, 4, 3, 5])
        assert type(r) is float
        assert type(p) is float

    def test_constant_series_is_undefined(self):
        assert pearson([1, 2, 3], [5, 5, 5]) == (0.0, 1.0)

    def test_mismatched_or_short_series_is_undefined(self):
        assert pearson([1, 2], [1]) == (0.0, 1.0)
        assert pearson([], []) == (0.0, 1.0)


class TestComputeCorrelations:
    def test_aligns_on_common_dates(self):
        sleep = _series("sleep", [6, 7, 8, 5, 9, 7])
        # mood logged one day later for the first entry, so only days 2..6 overlap
        mood = _series("mood", [2, 3, 4, 1, 5], start_day=2)
        (result,) = compute_correlations(sleep + mood)
        assert result.data_points == 5
        assert {result.variable_a, result.variable_b} == {"sleep", "mood"}

    def test_minimum_points_enforced(self):
        a = _series("a", [1, 2, 3, 4])
        b = _series("b", [2, 4, 6, 8])
        assert compute_correlations(a + b) == []
        assert len(compute_correlations(a + b, min_points=4)) == 1

    def test_sorted_by_strength(self):
        base = [1, 2, 3, 4, 5, 6]
        records = (
            _series("base", base)
            + _series("twin", [2, 4, 6, 8, 10, 12])
            + _series("noisy", [3, 1, 4, 1, 5, 9])
        )
        results = compute_correlations(records)
        magnitudes = [abs(c.coefficient) for c in results]
        assert magnitudes == sorted(magnitudes, reverse=True)
        assert {results[0].variable_a, results[0].variable_b} == {"base", "twin"}
        assert results[0].strength == "strong"
        assert results[0].direction == "positive"

    def test_last_value_per_day_wins(self):
        a = _series("a", [1, 2, 3, 4, 5])
        b = _series("b", [1, 2, 3, 4, 5])
        dup = _series("a", [100], start_day=1)
        (result,) = compute_correlations(a + dup + b)
        assert result.coefficient < 1.0

    def test_as_dict(self):
        a = _series("a", [1, 2, 3, 4, 5])
        b = _series("b", [5, 4, 3, 2, 1])
        data = compute_correlations(a + b)[0].as_dict()
        assert data["coefficient"] == -1.0
        assert data["direction"] == "negative"
        assert data["data_points"] == 5
