"""Tests for stats.py and report.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from k12_study.attempts import record_attempt
from k12_study.models import AttemptInput
from k12_study.report import suggestions_for, weekly_report
from k12_study.stats import (
    AccuracyStats,
    badges,
    daily_accuracy,
    percent,
    stats_between,
    study_streak,
    weekly_stats,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _at(when, correct=True, *, kp_id="math-4-area", subject="math", user_id="u1"):
    record_attempt(
        AttemptInput(
            user_id=user_id,
            question_id="q-area-1",
            subject=subject,
            knowledge_point_id=kp_id,
            correct=correct,
            created_at=when.isoformat(),
        )
    )


class TestPercent:
    def test_rounds_half_up(self):
        assert percent(1, 8) == 13
        assert percent(2, 3) == 67
        assert percent(1, 3) == 33
        assert percent(0, 0) == 0
        assert percent(5, 5) == 100


class TestWindows:
    def test_weekly_excludes_older_attempts(self):
        _at(NOW - timedelta(days=1), True)
        _at(NOW - timedelta(days=2), False)
        _at(NOW - timedelta(days=9), True)
        stats = weekly_stats("u1", NOW)
        assert stats == AccuracyStats(total=2, correct=1, accuracy=50)

    def test_weekly_excludes_attempts_after_now(self):
        _at(NOW - timedelta(days=1), True)
        _at(NOW, False)
        _at(NOW + timedelta(days=1), False)
        assert weekly_stats("u1", NOW) == AccuracyStats(total=1, correct=1, accuracy=100)

    def test_between_is_half_open(self):
        start = NOW - timedelta(days=14)
        end = NOW - timedelta(days=7)
        _at(start, True)
        _at(end, False)
        assert stats_between("u1", start, end).total == 1

    def test_streak(self):
        for days_ago in (0, 1, 2, 4):
            _at(NOW - timedelta(days=days_ago))
        assert study_streak("u1", NOW) == 3
        assert study_streak("u1", NOW + timedelta(days=1)) == 0

    def test_daily_accuracy_series(self):
        _at(NOW, True)
        _at(NOW, False)
        series = daily_accuracy("u1", 7, NOW)
        assert len(series) == 7
        assert series[0]["date"] == "2026-03-04"
        assert series[-1] == {"date": "2026-03-10", "total": 2, "correct": 1, "accuracy": 50}


class TestBadges:
    def test_none_for_new_user(self):
        assert badges("u1", NOW) == []

    def test_earned(self):
        for days_ago in (0, 1, 2):
            for _ in range(2):
                _at(NOW - timedelta(days=days_ago, hours=1), True)
        assert [badge.id for badge in badges("u1", NOW)] == ["first", "streak-3", "accuracy-80"]


class TestWeeklyReport:
    def test_report_shape(self, seeded):
        _at(NOW - timedelta(days=1), False)
        _at(NOW - timedelta(days=10), True)
        report = weekly_report("u1", ["math", "english"], now=NOW)
        assert report["stats"] == {"total": 1, "correct": 0, "accuracy": 0}
        assert report["previousStats"] == {"total": 1, "correct": 1, "accuracy": 100}
        assert len(report["trend"]) == 7
        assert len(report["weakPoints"]) == 4
        assert report["weakPoints"][0]["ratio"] == 0
        assert {item["subject"] for item in report["weakPoints"]} == {"math", "english"}
        assert report["suggestions"][-1].startswith("Focus first on:")

    def test_suggestions(self):
        low = AccuracyStats(total=2, correct=0, accuracy=0)
        high = AccuracyStats(total=20, correct=18, accuracy=90)
        assert len(suggestions_for(low, high, [])) == 3
        assert suggestions_for(high, low, []) == ["Accuracy is clearly up; keep the current pace."]
