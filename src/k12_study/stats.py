"""Learning statistics derived from the attempt ledger: accuracy windows, streaks, badges."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from .attempts import list_attempts_by_user
from .db import normalize_datetime, parse_iso
from .models import Attempt


@dataclass(slots=True)
class AccuracyStats:
    total: int
    correct: int
    accuracy: int  # percent, rounded half up

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "correct": self.correct, "accuracy": self.accuracy}


@dataclass(frozen=True, slots=True)
class Badge:
    id: str
    title: str
    description: str


def percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(correct * 100 / total + 0.5))


def summarize(attempts: Iterable[Attempt]) -> AccuracyStats:
    total = 0
    correct = 0
    for attempt in attempts:
        total += 1
        correct += 1 if attempt.correct else 0
    return AccuracyStats(total=total, correct=correct, accuracy=percent(correct, total))


def _now(now: datetime | None) -> datetime:
    return normalize_datetime(now or datetime.now(timezone.utc))


def _attempt_day(attempt: Attempt) -> date:
    return parse_iso(attempt.created_at).date()


def stats_between(user_id: str, start: datetime, end: datetime) -> AccuracyStats:
    """Accuracy over attempts with start <= created_at < end."""
    lower = normalize_datetime(start)
    upper = normalize_datetime(end)
    return summarize(
        attempt
        for attempt in list_attempts_by_user(user_id)
        if lower <= parse_iso(attempt.created_at) < upper
    )


def accuracy_last_days(user_id: str, days: int, now: datetime | None = None) -> AccuracyStats:
    moment = _now(now)
    return stats_between(user_id, moment - timedelta(days=days), moment)


def weekly_stats(user_id: str, now: datetime | None = None) -> AccuracyStats:
    return accuracy_last_days(user_id, 7, now)


def daily_activity(user_id: str) -> dict[str, int]:
    """Attempts per UTC day, keyed by ISO date."""
    activity: dict[str, int] = {}
    for attempt in list_attempts_by_user(user_id):
        key = _attempt_day(attempt).isoformat()
        activity[key] = activity.get(key, 0) + 1
    return activity


def study_streak(user_id: str, now: datetime | None = None) -> int:
    """Consecutive days with at least one attempt, counting back from today."""
    activity = daily_activity(user_id)
    cursor = _now(now).date()
    streak = 0
    while cursor.isoformat() in activity:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def daily_accuracy(user_id: str, days: int, now: datetime | None = None) -> list[dict[str, object]]:
    """One bucket per day for the last ``days`` days, oldest first."""
    buckets: dict[str, list[int]] = {}
    for attempt in list_attempts_by_user(user_id):
        bucket = buckets.setdefault(_attempt_day(attempt).isoformat(), [0, 0])
        bucket[0] += 1 if attempt.correct else 0
        bucket[1] += 1

    today = _now(now).date()
    series: list[dict[str, object]] = []
    for offset in range(days - 1, -1, -1):
        key = (today - timedelta(days=offset)).isoformat()
        correct, total = buckets.get(key, [0, 0])
        series.append(
            {"date": key, "total": total, "correct": correct, "accuracy": percent(correct, total)}
        )
    return series


def badges(user_id: str, now: datetime | None = None) -> list[Badge]:
    total_attempts = len(list_attempts_by_user(user_id))
    streak = study_streak(user_id, now)
    weekly = accuracy_last_days(user_id, 7, now)

    earned: list[Badge] = []
    if total_attempts >= 1:
        earned.append(Badge("first", "First session", "Finished a first practice"))
    if streak >= 3:
        earned.append(Badge("streak-3", "3-day streak", "Studied three days in a row"))
    if weekly.total >= 5 and weekly.accuracy >= 80:
        earned.append(Badge("accuracy-80", "Sharp shooter", "Accuracy of 80% or more over the last 7 days"))
    if total_attempts >= 50:
        earned.append(Badge("practice-50", "Practice pro", "Answered 50 questions"))
    return earned


__all__ = [
    "AccuracyStats",
    "Badge",
    "accuracy_last_days",
    "badges",
    "daily_accuracy",
    "daily_activity",
    "percent",
    "stats_between",
    "study_streak",
    "summarize",
    "weekly_stats",
]
