"""Weekly learning report for a student."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from .db import normalize_datetime
from .ranking import weak_points
from .stats import (
    AccuracyStats,
    badges,
    daily_accuracy,
    percent,
    stats_between,
    study_streak,
    weekly_stats,
)

REPORT_WEAK_POINT_LIMIT = 5
LOW_VOLUME_THRESHOLD = 5
LOW_ACCURACY_THRESHOLD = 60
TREND_MARGIN = 5


def report_weak_points(user_id: str, subjects: Iterable[str]) -> list[dict[str, Any]]:
    """Per-subject weak points merged and re-ranked by ratio, top five overall."""
    merged: list[dict[str, Any]] = []
    for subject in subjects:
        for entry in weak_points(user_id, subject):
            merged.append(
                {
                    "id": entry.knowledge_point_id,
                    "title": entry.title,
                    "ratio": percent(entry.correct_count, entry.total_count),
                    "total": entry.total_count,
                    "subject": subject,
                }
            )
    # Stable sort keeps each subject's own tie order.
    merged.sort(key=lambda item: item["ratio"])
    return merged[:REPORT_WEAK_POINT_LIMIT]


def suggestions_for(
    current: AccuracyStats,
    previous: AccuracyStats,
    weak: list[dict[str, Any]],
) -> list[str]:
    suggestions: list[str] = []
    if current.total < LOW_VOLUME_THRESHOLD:
        suggestions.append("Little practice this week; aim for 5-8 questions a day.")
    if current.accuracy < LOW_ACCURACY_THRESHOLD:
        suggestions.append("Accuracy is low; consolidate the basics before raising difficulty.")
    if current.accuracy >= previous.accuracy + TREND_MARGIN:
        suggestions.append("Accuracy is clearly up; keep the current pace.")
    elif current.accuracy + TREND_MARGIN < previous.accuracy:
        suggestions.append("Accuracy dropped; review the causes and practise your wrong answers.")
    if weak:
        suggestions.append(f"Focus first on: {weak[0]['title']}.")
    return suggestions


def weekly_report(
    user_id: str,
    subjects: Iterable[str] = ("math",),
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    moment = normalize_datetime(now or datetime.now(timezone.utc))
    week_start = moment - timedelta(days=7)
    current = weekly_stats(user_id, moment)
    previous = stats_between(user_id, moment - timedelta(days=14), week_start)
    weak = report_weak_points(user_id, list(subjects))
    return {
        "userId": user_id,
        "stats": current.to_dict(),
        "previousStats": previous.to_dict(),
        "trend": daily_accuracy(user_id, 7, moment),
        "weakPoints": weak,
        "streak": study_streak(user_id, moment),
        "badges": [badge.id for badge in badges(user_id, moment)],
        "suggestions": suggestions_for(current, previous, weak),
    }


__all__ = [
    "REPORT_WEAK_POINT_LIMIT",
    "report_weak_points",
    "suggestions_for",
    "weekly_report",
]
