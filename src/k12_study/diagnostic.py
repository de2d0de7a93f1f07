"""Diagnostic sessions: a spread-out batch of questions, graded in one submission."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from loguru import logger

from .attempts import record_attempt
from .content import get_knowledge_points, get_questions_by_ids
from .errors import ValidationError
from .models import AttemptInput, Question, StudyPlan
from .plans import generate_study_plan
from .selector import DIAGNOSTIC_SIZE, diagnostic_questions
from .stats import percent


@dataclass(slots=True)
class DiagnosticAnswer:
    question_id: str
    answer: str
    reason: str | None = None


def start_diagnostic(
    subject: str | None,
    grade: str | None,
    *,
    count: int = DIAGNOSTIC_SIZE,
    rng: random.Random | None = None,
) -> list[Question]:
    """Up to ``count`` questions; empty when the pool has none."""
    return diagnostic_questions(subject, grade, count, rng=rng)


def submit_diagnostic(
    user_id: str,
    subject: str,
    grade: str,
    answers: Sequence[DiagnosticAnswer],
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Grade every answer, record it as a diagnostic attempt and rebuild the plan.

    Answers for unknown questions are ignored.
    """
    if not subject or not grade or not answers:
        raise ValidationError("missing fields: subject, grade, answers")

    questions = {q.id: q for q in get_questions_by_ids([a.question_id for a in answers], active_only=False)}
    titles = {kp.id: kp.title for kp in get_knowledge_points(subject)}
    breakdown: dict[str, list[int]] = {}
    wrong_reasons: dict[str, int] = {}
    graded = 0
    correct_total = 0

    for item in answers:
        question = questions.get(item.question_id)
        if question is None:
            continue
        correct = item.answer.strip() == question.answer.strip()
        graded += 1
        correct_total += 1 if correct else 0
        stat = breakdown.setdefault(question.knowledge_point_id, [0, 0])
        stat[0] += 1 if correct else 0
        stat[1] += 1
        if not correct and item.reason:
            wrong_reasons[item.reason] = wrong_reasons.get(item.reason, 0) + 1
        record_attempt(
            AttemptInput(
                user_id=user_id,
                question_id=question.id,
                subject=question.subject,
                knowledge_point_id=question.knowledge_point_id,
                correct=correct,
                answer=item.answer,
                reason=item.reason,
                source="diagnostic",
            )
        )

    plan: StudyPlan = generate_study_plan(user_id, subject, now=now)
    logger.info("Diagnostic for user {}: {}/{} correct", user_id, correct_total, graded)
    return {
        "total": graded,
        "correct": correct_total,
        "accuracy": percent(correct_total, graded),
        "plan": plan.to_dict(),
        "breakdown": [
            {
                "knowledgePointId": kp_id,
                "title": titles.get(kp_id, kp_id),
                "total": total,
                "correct": correct,
                "accuracy": percent(correct, total),
            }
            for kp_id, (correct, total) in breakdown.items()
        ],
        "wrongReasons": [{"reason": reason, "count": count} for reason, count in wrong_reasons.items()],
    }


__all__ = ["DiagnosticAnswer", "start_diagnostic", "submit_diagnostic"]
