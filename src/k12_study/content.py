"""Knowledge point and question store: YAML seed loader and record access."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import yaml

from .db import connect
from .errors import ValidationError
from .models import KnowledgePoint, Question

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
CONTENT_FILE = DATA_DIR / "content.yaml"


def load_content(path: Path | None = None) -> tuple[list[KnowledgePoint], list[Question]]:
    """Parse a YAML content file into knowledge points and questions.

    The file holds two top-level lists, ``knowledge_points`` and ``questions``.
    Questions inherit subject and grade from their knowledge point when the
    entry leaves them out.
    """
    file_path = path or CONTENT_FILE
    with open(file_path, encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}

    knowledge_points: list[KnowledgePoint] = []
    for entry in raw.get("knowledge_points", []):
        knowledge_points.append(
            KnowledgePoint(
                id=str(entry["id"]),
                subject=str(entry["subject"]),
                grade=str(entry["grade"]),
                title=str(entry["title"]),
                chapter=str(entry.get("chapter", "")),
            )
        )

    by_id = {kp.id: kp for kp in knowledge_points}
    questions: list[Question] = []
    for entry in raw.get("questions", []):
        kp_id = str(entry["knowledge_point_id"])
        kp = by_id.get(kp_id)
        if kp is None and ("subject" not in entry or "grade" not in entry):
            raise ValueError(f"Question '{entry.get('id')}' has unknown knowledge point '{kp_id}'")
        questions.append(
            Question(
                id=str(entry["id"]),
                subject=str(entry.get("subject") or kp.subject),  # type: ignore[union-attr]
                grade=str(entry.get("grade") or kp.grade),  # type: ignore[union-attr]
                knowledge_point_id=kp_id,
                stem=str(entry["stem"]),
                answer=str(entry["answer"]),
                options=[str(option) for option in entry.get("options", [])],
                explanation=str(entry.get("explanation", "")),
                active=bool(entry.get("active", True)),
            )
        )
    return knowledge_points, questions


def seed_content(path: Path | None = None) -> tuple[int, int]:
    """Upsert every knowledge point and question from a YAML file.

    Returns (knowledge_points, questions) seeded.
    """
    knowledge_points, questions = load_content(path)
    for kp in knowledge_points:
        upsert_knowledge_point(kp)
    for question in questions:
        upsert_question(question)
    return len(knowledge_points), len(questions)


# ── Knowledge points ─────────────────────────────────────────────────────────


def upsert_knowledge_point(kp: KnowledgePoint) -> KnowledgePoint:
    if not kp.id.strip() or not kp.subject.strip() or not kp.title.strip():
        raise ValidationError("knowledge point needs id, subject and title")
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO knowledge_points (id, subject, grade, title, chapter)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                subject = excluded.subject,
                grade = excluded.grade,
                title = excluded.title,
                chapter = excluded.chapter
            """,
            (kp.id, kp.subject, kp.grade, kp.title, kp.chapter),
        )
    return kp


def get_knowledge_point(kp_id: str) -> KnowledgePoint | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM knowledge_points WHERE id = ?", (kp_id,)).fetchone()
    return _row_to_knowledge_point(row) if row else None


def get_knowledge_points(subject: str | None = None, grade: str | None = None) -> list[KnowledgePoint]:
    clauses: list[str] = []
    params: list[Any] = []
    if subject:
        clauses.append("subject = ?")
        params.append(subject)
    if grade:
        clauses.append("grade = ?")
        params.append(grade)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with connect() as conn:
        rows = conn.execute(
            f"SELECT * FROM knowledge_points {where} ORDER BY chapter, title, id", params
        ).fetchall()
    return [_row_to_knowledge_point(row) for row in rows]


def get_subjects() -> list[str]:
    with connect() as conn:
        rows = conn.execute("SELECT DISTINCT subject FROM knowledge_points ORDER BY subject").fetchall()
    return [str(row["subject"]) for row in rows]


def _row_to_knowledge_point(row: Any) -> KnowledgePoint:
    return KnowledgePoint(
        id=str(row["id"]),
        subject=str(row["subject"]),
        grade=str(row["grade"]),
        title=str(row["title"]),
        chapter=str(row["chapter"]),
    )


# ── Questions ────────────────────────────────────────────────────────────────


def upsert_question(question: Question) -> Question:
    if not question.id.strip() or not question.knowledge_point_id.strip():
        raise ValidationError("question needs id and knowledge_point_id")
    if not question.stem.strip() or not question.answer.strip():
        raise ValidationError("question needs stem and answer")
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO questions
                (id, subject, grade, knowledge_point_id, stem, options_json, answer, explanation, active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                subject = excluded.subject,
                grade = excluded.grade,
                knowledge_point_id = excluded.knowledge_point_id,
                stem = excluded.stem,
                options_json = excluded.options_json,
                answer = excluded.answer,
                explanation = excluded.explanation,
                active = excluded.active
            """,
            (
                question.id,
                question.subject,
                question.grade,
                question.knowledge_point_id,
                question.stem,
                json.dumps(question.options, ensure_ascii=False),
                question.answer,
                question.explanation,
                int(question.active),
            ),
        )
    return question


def get_question(question_id: str) -> Question | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    return _row_to_question(row) if row else None


def get_questions(
    subject: str | None = None,
    grade: str | None = None,
    knowledge_point_id: str | None = None,
    *,
    active_only: bool = True,
) -> list[Question]:
    """Return questions matching every filter that is set, ordered by id."""
    clauses: list[str] = []
    params: list[Any] = []
    if subject:
        clauses.append("subject = ?")
        params.append(subject)
    if grade:
        clauses.append("grade = ?")
        params.append(grade)
    if knowledge_point_id:
        clauses.append("knowledge_point_id = ?")
        params.append(knowledge_point_id)
    if active_only:
        clauses.append("active = 1")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with connect() as conn:
        rows = conn.execute(f"SELECT * FROM questions {where} ORDER BY id", params).fetchall()
    return [_row_to_question(row) for row in rows]


def get_questions_by_ids(question_ids: Iterable[str], *, active_only: bool = True) -> list[Question]:
    ids = sorted(set(question_ids))
    if not ids:
        return []
    placeholders = ",".join("?" for _ in ids)
    active_clause = "AND active = 1" if active_only else ""
    with connect() as conn:
        rows = conn.execute(
            f"SELECT * FROM questions WHERE id IN ({placeholders}) {active_clause} ORDER BY id",
            ids,
        ).fetchall()
    return [_row_to_question(row) for row in rows]


def _row_to_question(row: Any) -> Question:
    try:
        options = json.loads(row["options_json"])
    except (json.JSONDecodeError, TypeError):
        options = []
    return Question(
        id=str(row["id"]),
        subject=str(row["subject"]),
        grade=str(row["grade"]),
        knowledge_point_id=str(row["knowledge_point_id"]),
        stem=str(row["stem"]),
        answer=str(row["answer"]),
        options=[str(option) for option in options],
        explanation=str(row["explanation"]),
        active=bool(row["active"]),
    )


__all__ = [
    "CONTENT_FILE",
    "get_knowledge_point",
    "get_knowledge_points",
    "get_question",
    "get_questions",
    "get_questions_by_ids",
    "get_subjects",
    "load_content",
    "seed_content",
    "upsert_knowledge_point",
    "upsert_question",
]
