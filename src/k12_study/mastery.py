"""Mastery aggregation: correct/total/ratio per knowledge point and per subject."""

from __future__ import annotations

from typing import Iterable, Sequence

from .attempts import list_attempts_by_user, list_attempts_by_users
from .content import get_knowledge_points
from .models import Attempt, KnowledgePoint, MasteryEntry, SubjectMastery


def aggregate_mastery(
    attempts: Iterable[Attempt],
    knowledge_points: Sequence[KnowledgePoint] = (),
    *,
    full_coverage: bool = False,
) -> list[MasteryEntry]:
    """Group attempts by knowledge point and count correct/total.

    With ``full_coverage`` every knowledge point in ``knowledge_points`` gets an
    entry, unpracticed ones with ``total_count == 0``. Entries come back in
    knowledge point id order. The result does not depend on attempt order.
    """
    titles = {kp.id: kp.title for kp in knowledge_points}
    entries: dict[str, MasteryEntry] = {}

    for attempt in attempts:
        entry = entries.get(attempt.knowledge_point_id)
        if entry is None:
            entry = MasteryEntry(
                knowledge_point_id=attempt.knowledge_point_id,
                title=titles.get(attempt.knowledge_point_id, attempt.knowledge_point_id),
                correct_count=0,
                total_count=0,
            )
            entries[attempt.knowledge_point_id] = entry
        entry.total_count += 1
        if attempt.correct:
            entry.correct_count += 1
        if entry.last_attempt_at is None or attempt.created_at > entry.last_attempt_at:
            entry.last_attempt_at = attempt.created_at

    if full_coverage:
        for kp in knowledge_points:
            if kp.id not in entries:
                entries[kp.id] = MasteryEntry(
                    knowledge_point_id=kp.id,
                    title=kp.title,
                    correct_count=0,
                    total_count=0,
                )

    return [entries[key] for key in sorted(entries)]


def subject_rollup(subject: str, entries: Sequence[MasteryEntry]) -> SubjectMastery:
    """Mean of per-point ratios over points practiced at least once.

    Unpracticed points are left out of the mean so they do not drag it to 0.
    """
    practiced = [entry for entry in entries if entry.practiced]
    ratio = sum(entry.ratio for entry in practiced) / len(practiced) if practiced else 0.0
    return SubjectMastery(
        subject=subject,
        ratio=ratio,
        practiced_points=len(practiced),
        total_points=len(entries),
        correct_count=sum(entry.correct_count for entry in entries),
        total_count=sum(entry.total_count for entry in entries),
    )


def mastery_for_user(
    user_id: str,
    subject: str | None = None,
    *,
    full_coverage: bool = True,
) -> list[MasteryEntry]:
    attempts = list_attempts_by_user(user_id, subject)
    return aggregate_mastery(attempts, get_knowledge_points(subject), full_coverage=full_coverage)


def mastery_for_users(
    user_ids: Iterable[str],
    subject: str | None = None,
    *,
    full_coverage: bool = False,
) -> list[MasteryEntry]:
    """Cohort view: one entry per knowledge point across all the given users."""
    attempts = list_attempts_by_users(user_ids, subject)
    return aggregate_mastery(attempts, get_knowledge_points(subject), full_coverage=full_coverage)


def subject_mastery(user_id: str, subject: str) -> SubjectMastery:
    return subject_rollup(subject, mastery_for_user(user_id, subject))


__all__ = [
    "aggregate_mastery",
    "mastery_for_user",
    "mastery_for_users",
    "subject_mastery",
    "subject_rollup",
]
