"""Weak-point ranking over mastery entries."""

from __future__ import annotations

from typing import Iterable

from .mastery import mastery_for_user
from .models import MasteryEntry

DEFAULT_WEAK_POINT_LIMIT = 3


def weak_point_sort_key(entry: MasteryEntry) -> tuple[float, int, str, str]:
    # Less-practiced points come first among equally weak ones.
    return (entry.ratio, entry.total_count, entry.title, entry.knowledge_point_id)


def rank_weak_points(entries: Iterable[MasteryEntry], limit: int | None = None) -> list[MasteryEntry]:
    """Lowest ratio first; ties by fewer attempts, then title, then id."""
    ranked = sorted(entries, key=weak_point_sort_key)
    if limit is None:
        return ranked
    return ranked[: max(0, limit)]


def weak_points(
    user_id: str,
    subject: str,
    limit: int = DEFAULT_WEAK_POINT_LIMIT,
) -> list[MasteryEntry]:
    return rank_weak_points(mastery_for_user(user_id, subject, full_coverage=True), limit)


__all__ = [
    "DEFAULT_WEAK_POINT_LIMIT",
    "rank_weak_points",
    "weak_point_sort_key",
    "weak_points",
]
