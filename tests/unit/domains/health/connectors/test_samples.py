"""Tests for wearable sample collapsing and daily summaries."""

from __future__ import annotations

import pytest

from modhealth.domains.health.connectors.samples import collapse_samples, summarize_daily_samples


class TestCollapse:
    def test_later_write_wins(self):
        samples = [
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 60},
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 62},
        ]
        assert collapse_samples(samples) == [{"timestamp": "2026-01-01T08:00:00Z", "bpm": 62}]

    def test_sorted_descending(self):
        samples = [
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 60},
            {"timestamp": "2026-01-01T10:00:00Z", "bpm": 70},
            {"timestamp": "2026-01-01T09:00:00Z", "bpm": 65},
        ]
        stamps = [s["timestamp"] for s in collapse_samples(samples)]
        assert stamps == [
            "2026-01-01T10:00:00Z",
            "2026-01-01T09:00:00Z",
            "2026-01-01T08:00:00Z",
        ]

    def test_keyless_samples_dropped(self):
        samples = [{"bpm": 60}, "noise", {"timestamp": "t1", "bpm": 61}]
        assert collapse_samples(samples) == [{"timestamp": "t1", "bpm": 61}]

    def test_empty_inputs(self):
        assert collapse_samples(None) == []
        assert collapse_samples([]) == []

    def test_custom_key(self):
        samples = [{"at": "b", "v": 1}, {"at": "a", "v": 2}, {"at": "b", "v": 3}]
        assert collapse_samples(samples, key="at") == [{"at": "b", "v": 3}, {"at": "a", "v": 2}]


class TestDailySummary:
    def test_min_and_average_per_day(self):
        samples = [
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 60},
            {"timestamp": "2026-01-01T09:00:00Z", "bpm": 70},
            {"timestamp": "2026-01-02T08:00:00Z", "bpm": 55},
        ]
        summary = summarize_daily_samples(samples)
        assert list(summary) == ["2026-01-02", "2026-01-01"]
        assert summary["2026-01-01"] == {"min": 60.0, "average": pytest.approx(65.0), "count": 2}
        assert summary["2026-01-02"]["count"] == 1

    def test_duplicate_timestamp_counted_once(self):
        samples = [
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 60},
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": 80},
        ]
        assert summarize_daily_samples(samples)["2026-01-01"]["average"] == 80

    def test_non_numeric_values_skipped(self):
        samples = [
            {"timestamp": "2026-01-01T08:00:00Z", "bpm": "fast"},
            {"timestamp": "2026-01-01T09:00:00Z", "bpm": True},
            {"timestamp": "2026-01-01T10:00:00Z", "bpm": float("nan")},
            {"timestamp": "2026-01-01T11:00:00Z", "bpm": 58},
        ]
        assert summarize_daily_samples(samples) == {
            "2026-01-01": {"min": 58.0, "average": 58.0, "count": 1}
        }
