"""Classes, enrolments, parent links, assignments and assignment progress."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .db import connect, new_id, now_iso, parse_iso
from .errors import NotFoundError, ValidationError
from .models import Assignment, AssignmentProgress, ClassRoom, ensure_progress_status


# ── Classes ──────────────────────────────────────────────────────────────────


def create_class(
    name: str,
    teacher_id: str,
    *,
    subject: str = "math",
    grade: str = "",
    class_id: str | None = None,
) -> ClassRoom:
    if not name.strip() or not teacher_id.strip():
        raise ValidationError("class needs a name and a teacher")
    klass = ClassRoom(
        id=class_id or new_id("class"),
        name=name.strip(),
        teacher_id=teacher_id,
        subject=subject,
        grade=grade,
        created_at=now_iso(),
    )
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO classes (id, name, teacher_id, subject, grade, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (klass.id, klass.name, klass.teacher_id, klass.subject, klass.grade, klass.created_at),
        )
    return klass


def get_class(class_id: str) -> ClassRoom | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,)).fetchone()
    return _row_to_class(row) if row else None


def get_classes_by_teacher(teacher_id: str) -> list[ClassRoom]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM classes WHERE teacher_id = ? ORDER BY created_at, id",
            (teacher_id,),
        ).fetchall()
    return [_row_to_class(row) for row in rows]


def add_student_to_class(class_id: str, student_id: str) -> bool:
    """Enrol a student; returns False when already enrolled."""
    if get_class(class_id) is None:
        raise NotFoundError(f"class {class_id} not found")
    with connect() as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO class_students (class_id, student_id, joined_at) VALUES (?, ?, ?)",
            (class_id, student_id, now_iso()),
        )
        return cursor.rowcount > 0


def get_class_student_ids(class_id: str) -> list[str]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT student_id FROM class_students WHERE class_id = ? ORDER BY joined_at, student_id",
            (class_id,),
        ).fetchall()
    return [str(row["student_id"]) for row in rows]


def link_parent(parent_id: str, student_id: str) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT OR IGNORE INTO parent_links (parent_id, student_id) VALUES (?, ?)",
            (parent_id, student_id),
        )


def get_parent_ids(student_id: str) -> list[str]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT parent_id FROM parent_links WHERE student_id = ? ORDER BY parent_id",
            (student_id,),
        ).fetchall()
    return [str(row["parent_id"]) for row in rows]


def _row_to_class(row: Any) -> ClassRoom:
    return ClassRoom(
        id=str(row["id"]),
        name=str(row["name"]),
        teacher_id=str(row["teacher_id"]),
        subject=str(row["subject"]),
        grade=str(row["grade"]),
        created_at=str(row["created_at"]),
    )


# ── Assignments ──────────────────────────────────────────────────────────────


def create_assignment(
    class_id: str,
    title: str,
    due_date: datetime | str,
    *,
    assignment_id: str | None = None,
) -> Assignment:
    if get_class(class_id) is None:
        raise NotFoundError(f"class {class_id} not found")
    if not title.strip():
        raise ValidationError("assignment needs a title")
    if isinstance(due_date, datetime):
        due_iso = now_iso(due_date)
    else:
        try:
            due_iso = now_iso(parse_iso(due_date))
        except ValueError as exc:
            raise ValidationError(f"malformed due date: {due_date}") from exc
    assignment = Assignment(
        id=assignment_id or new_id("assignment"),
        class_id=class_id,
        title=title.strip(),
        due_date=due_iso,
        created_at=now_iso(),
    )
    with connect() as conn:
        conn.execute(
            "INSERT INTO assignments (id, class_id, title, due_date, created_at) VALUES (?, ?, ?, ?, ?)",
            (assignment.id, assignment.class_id, assignment.title, assignment.due_date, assignment.created_at),
        )
    return assignment


def get_assignments_by_class(class_id: str) -> list[Assignment]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM assignments WHERE class_id = ? ORDER BY due_date, id",
            (class_id,),
        ).fetchall()
    return [
        Assignment(
            id=str(row["id"]),
            class_id=str(row["class_id"]),
            title=str(row["title"]),
            due_date=str(row["due_date"]),
            created_at=str(row["created_at"]),
        )
        for row in rows
    ]


def set_assignment_progress(
    assignment_id: str,
    student_id: str,
    status: str,
    *,
    now: datetime | None = None,
) -> AssignmentProgress:
    normalized = ensure_progress_status(status)
    completed_at = now_iso(now) if normalized == "completed" else None
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO assignment_progress (assignment_id, student_id, status, completed_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(assignment_id, student_id) DO UPDATE SET
                status = excluded.status,
                completed_at = excluded.completed_at
            """,
            (assignment_id, student_id, normalized, completed_at),
        )
    return AssignmentProgress(
        assignment_id=assignment_id,
        student_id=student_id,
        status=normalized,
        completed_at=completed_at,
    )


def get_assignment_progress(assignment_id: str) -> list[AssignmentProgress]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM assignment_progress WHERE assignment_id = ?",
            (assignment_id,),
        ).fetchall()
    return [
        AssignmentProgress(
            assignment_id=str(row["assignment_id"]),
            student_id=str(row["student_id"]),
            status=str(row["status"]),
            completed_at=str(row["completed_at"]) if row["completed_at"] else None,
        )
        for row in rows
    ]


def count_completed_assignments(student_id: str) -> int:
    with connect() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM assignment_progress WHERE student_id = ? AND status = 'completed'",
            (student_id,),
        ).fetchone()
    return int(row[0])


__all__ = [
    "add_student_to_class",
    "count_completed_assignments",
    "create_assignment",
    "create_class",
    "get_assignment_progress",
    "get_assignments_by_class",
    "get_class",
    "get_class_student_ids",
    "get_classes_by_teacher",
    "get_parent_ids",
    "link_parent",
    "set_assignment_progress",
]
