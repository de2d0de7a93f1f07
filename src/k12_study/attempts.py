"""Attempt ledger: append-only record of every answer a user submits."""

from __future__ import annotations

from typing import Any, Iterable

from loguru import logger

from .content import get_question
from .db import connect, now_iso, parse_iso
from .errors import NotFoundError, ValidationError
from .models import Attempt, AttemptInput, AttemptSource


def record_attempt(attempt: AttemptInput) -> Attempt:
    """Validate and append one attempt. Attempts are never updated or deleted."""
    attempt.validate()
    timestamp = _normalize_timestamp(attempt.created_at)
    with connect() as conn:
        cursor = conn.execute(
            """
            INSERT INTO question_attempts
                (user_id, question_id, subject, knowledge_point_id, correct, answer, reason, source, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attempt.user_id,
                attempt.question_id,
                attempt.subject,
                attempt.knowledge_point_id,
                int(bool(attempt.correct)),
                attempt.answer,
                attempt.reason,
                attempt.source,
                timestamp,
            ),
        )
        attempt_id = int(cursor.lastrowid)
    logger.debug(
        "Recorded {} attempt {} for user {} on question {} (correct={})",
        attempt.source,
        attempt_id,
        attempt.user_id,
        attempt.question_id,
        attempt.correct,
    )
    return Attempt(
        id=attempt_id,
        user_id=attempt.user_id,
        question_id=attempt.question_id,
        subject=attempt.subject,
        knowledge_point_id=attempt.knowledge_point_id,
        correct=bool(attempt.correct),
        answer=attempt.answer,
        reason=attempt.reason,
        source=attempt.source,
        created_at=timestamp,
    )


def grade_answer(
    user_id: str,
    question_id: str,
    answer: str,
    *,
    reason: str | None = None,
    source: AttemptSource = "practice",
) -> tuple[Attempt, str, str]:
    """Grade ``answer`` against the stored question and record the attempt.

    Returns the attempt with the expected answer and explanation.
    """
    if not question_id or not str(answer or "").strip():
        raise ValidationError("missing fields: questionId, answer")
    question = get_question(question_id)
    if question is None:
        raise NotFoundError(f"question {question_id} not found")
    attempt = record_attempt(
        AttemptInput(
            user_id=user_id,
            question_id=question.id,
            subject=question.subject,
            knowledge_point_id=question.knowledge_point_id,
            correct=answer.strip() == question.answer.strip(),
            answer=answer,
            reason=reason,
            source=source,
        )
    )
    return attempt, question.answer, question.explanation


def list_attempts_by_user(user_id: str, subject: str | None = None) -> list[Attempt]:
    with connect() as conn:
        if subject:
            rows = conn.execute(
                "SELECT * FROM question_attempts WHERE user_id = ? AND subject = ?",
                (user_id, subject),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM question_attempts WHERE user_id = ?", (user_id,)
            ).fetchall()
    return [_row_to_attempt(row) for row in rows]


def list_attempts_by_users(user_ids: Iterable[str], subject: str | None = None) -> list[Attempt]:
    ids = sorted(set(user_ids))
    if not ids:
        return []
    placeholders = ",".join("?" for _ in ids)
    params: list[Any] = list(ids)
    subject_clause = ""
    if subject:
        subject_clause = "AND subject = ?"
        params.append(subject)
    with connect() as conn:
        rows = conn.execute(
            f"SELECT * FROM question_attempts WHERE user_id IN ({placeholders}) {subject_clause}",
            params,
        ).fetchall()
    return [_row_to_attempt(row) for row in rows]


def last_attempt_by_question(user_id: str) -> dict[str, Attempt]:
    """Latest attempt per question; ties on timestamp go to the later insert."""
    latest: dict[str, Attempt] = {}
    for attempt in list_attempts_by_user(user_id):
        previous = latest.get(attempt.question_id)
        if previous is None or (attempt.created_at, attempt.id) > (previous.created_at, previous.id):
            latest[attempt.question_id] = attempt
    return latest


def wrong_question_ids(user_id: str) -> set[str]:
    """Questions whose latest attempt by the user was incorrect (the wrong book)."""
    return {
        question_id
        for question_id, attempt in last_attempt_by_question(user_id).items()
        if not attempt.correct
    }


def _normalize_timestamp(value: str | None) -> str:
    if not value:
        return now_iso()
    try:
        return now_iso(parse_iso(value))
    except ValueError as exc:
        raise ValidationError(f"malformed created_at: {value}") from exc


def _row_to_attempt(row: Any) -> Attempt:
    return Attempt(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        question_id=str(row["question_id"]),
        subject=str(row["subject"]),
        knowledge_point_id=str(row["knowledge_point_id"]),
        correct=bool(row["correct"]),
        answer=str(row["answer"]),
        reason=str(row["reason"]) if row["reason"] is not None else None,
        source=str(row["source"]),
        created_at=str(row["created_at"]),
    )


__all__ = [
    "grade_answer",
    "last_attempt_by_question",
    "list_attempts_by_user",
    "list_attempts_by_users",
    "record_attempt",
    "wrong_question_ids",
]
