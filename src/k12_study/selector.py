"""Practice question selection: normal, wrong-answer review, adaptive and diagnostic."""

from __future__ import annotations

import random

from .attempts import wrong_question_ids
from .content import get_questions, get_questions_by_ids
from .errors import NotFoundError, ValidationError
from .mastery import mastery_for_user
from .models import Question, SelectionMode, ensure_selection_mode
from .ranking import rank_weak_points

DIAGNOSTIC_SIZE = 10


def practice_pool(
    subject: str | None,
    grade: str | None,
    knowledge_point_id: str | None = None,
) -> list[Question]:
    return get_questions(subject, grade, knowledge_point_id)


def wrong_pool(
    user_id: str,
    subject: str | None,
    grade: str | None,
    knowledge_point_id: str | None = None,
) -> list[Question]:
    """Active questions from the user's wrong book matching every filter that is set."""
    return [
        question
        for question in get_questions_by_ids(wrong_question_ids(user_id))
        if (not subject or question.subject == subject)
        and (not grade or question.grade == grade)
        and (not knowledge_point_id or question.knowledge_point_id == knowledge_point_id)
    ]


def adaptive_pool(user_id: str, subject: str | None, grade: str | None) -> list[Question]:
    """Questions for the weakest knowledge point that has any questions at all."""
    if not subject:
        raise ValidationError("adaptive mode needs a subject")
    for entry in rank_weak_points(mastery_for_user(user_id, subject, full_coverage=True)):
        pool = practice_pool(subject, grade, entry.knowledge_point_id)
        if pool:
            return pool
    return []


def candidate_pool(
    user_id: str,
    subject: str | None,
    grade: str | None,
    knowledge_point_id: str | None = None,
    mode: SelectionMode | str | None = None,
) -> list[Question]:
    selected_mode = ensure_selection_mode(mode)
    if selected_mode == "wrong":
        return wrong_pool(user_id, subject, grade, knowledge_point_id)
    if selected_mode == "adaptive" and not knowledge_point_id:
        return adaptive_pool(user_id, subject, grade)
    return practice_pool(subject, grade, knowledge_point_id)


def next_question(
    user_id: str,
    subject: str | None,
    grade: str | None,
    knowledge_point_id: str | None = None,
    mode: SelectionMode | str | None = None,
    *,
    rng: random.Random | None = None,
) -> Question:
    """Uniform random draw from the candidate pool for ``mode``.

    Raises NotFoundError when the pool is empty; in wrong mode that means
    there is nothing left to review.
    """
    pool = candidate_pool(user_id, subject, grade, knowledge_point_id, mode)
    if not pool:
        raise NotFoundError("no questions")
    chooser = rng or random.Random()
    return chooser.choice(pool)


def diagnostic_questions(
    subject: str | None,
    grade: str | None,
    count: int = DIAGNOSTIC_SIZE,
    *,
    rng: random.Random | None = None,
) -> list[Question]:
    """Sample up to ``count`` questions without replacement.

    Knowledge points take turns so the batch spreads across as many of them
    as the pool allows.
    """
    questions = practice_pool(subject, grade)
    chooser = rng or random.Random()

    groups: dict[str, list[Question]] = {}
    for question in questions:
        groups.setdefault(question.knowledge_point_id, []).append(question)
    for group in groups.values():
        chooser.shuffle(group)

    selected: list[Question] = []
    keys = sorted(groups)
    while len(selected) < count and any(groups[key] for key in keys):
        for key in keys:
            group = groups[key]
            if group:
                selected.append(group.pop())
            if len(selected) >= count:
                break
    return selected


__all__ = [
    "DIAGNOSTIC_SIZE",
    "adaptive_pool",
    "candidate_pool",
    "diagnostic_questions",
    "next_question",
    "practice_pool",
    "wrong_pool",
]
