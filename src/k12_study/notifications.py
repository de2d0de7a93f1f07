"""Per-class reminder rules and the user notification inbox."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Iterable

from .db import connect, now_iso
from .errors import NotFoundError, ValidationError
from .models import Notification, NotificationRule

DEFAULT_DUE_DAYS = 2
DEFAULT_OVERDUE_DAYS = 0


def default_rule(class_id: str) -> NotificationRule:
    return NotificationRule(
        class_id=class_id,
        enabled=True,
        due_days=DEFAULT_DUE_DAYS,
        overdue_days=DEFAULT_OVERDUE_DAYS,
        include_parents=True,
    )


def get_rules_by_class_ids(class_ids: Iterable[str]) -> list[NotificationRule]:
    ids = list(class_ids)
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    with connect() as conn:
        rows = conn.execute(
            f"SELECT * FROM notification_rules WHERE class_id IN ({placeholders}) ORDER BY class_id",
            ids,
        ).fetchall()
    return [_row_to_rule(row) for row in rows]


def get_effective_rule(class_id: str) -> NotificationRule:
    """Stored rule for the class, or the defaults when none was saved."""
    rules = get_rules_by_class_ids([class_id])
    return rules[0] if rules else default_rule(class_id)


def _ensure_days(name: str, value: Any) -> int:
    message = f"{name} must be a non-negative integer"
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(message)
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(message) from exc
    if days < 0:
        raise ValidationError(message)
    return days


def upsert_rule(
    class_id: str,
    *,
    enabled: bool = True,
    due_days: int = DEFAULT_DUE_DAYS,
    overdue_days: int = DEFAULT_OVERDUE_DAYS,
    include_parents: bool = True,
    now: datetime | None = None,
) -> NotificationRule:
    if not class_id or not class_id.strip():
        raise ValidationError("missing classId")
    due = _ensure_days("dueDays", due_days)
    overdue = _ensure_days("overdueDays", overdue_days)
    timestamp = now_iso(now)
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO notification_rules
                (class_id, enabled, due_days, overdue_days, include_parents, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(class_id) DO UPDATE SET
                enabled = excluded.enabled,
                due_days = excluded.due_days,
                overdue_days = excluded.overdue_days,
                include_parents = excluded.include_parents,
                updated_at = excluded.updated_at
            """,
            (class_id, int(bool(enabled)), due, overdue, int(bool(include_parents)), timestamp, timestamp),
        )
        row = conn.execute(
            "SELECT * FROM notification_rules WHERE class_id = ?", (class_id,)
        ).fetchone()
    return _row_to_rule(row)


def _row_to_rule(row: Any) -> NotificationRule:
    return NotificationRule(
        class_id=str(row["class_id"]),
        enabled=bool(row["enabled"]),
        due_days=int(row["due_days"]),
        overdue_days=int(row["overdue_days"]),
        include_parents=bool(row["include_parents"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


# ── Inbox ────────────────────────────────────────────────────────────────────


def insert_notification(
    conn: sqlite3.Connection,
    user_id: str,
    title: str,
    content: str,
    type: str,
    created_at: str,
) -> int:
    cursor = conn.execute(
        "INSERT INTO notifications (user_id, title, content, type, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, title, content, type, created_at),
    )
    return int(cursor.lastrowid or 0)


def create_notification(
    user_id: str,
    title: str,
    content: str,
    type: str,
    *,
    now: datetime | None = None,
) -> Notification:
    created_at = now_iso(now)
    with connect() as conn:
        notification_id = insert_notification(conn, user_id, title, content, type, created_at)
    return Notification(
        id=notification_id,
        user_id=user_id,
        title=title,
        content=content,
        type=type,
        created_at=created_at,
    )


def list_notifications_for_user(user_id: str, *, unread_only: bool = False) -> list[Notification]:
    """Newest first."""
    sql = "SELECT * FROM notifications WHERE user_id = ?"
    if unread_only:
        sql += " AND read_at IS NULL"
    sql += " ORDER BY created_at DESC, id DESC"
    with connect() as conn:
        rows = conn.execute(sql, (user_id,)).fetchall()
    return [_row_to_notification(row) for row in rows]


def mark_notification_read(user_id: str, notification_id: int, *, now: datetime | None = None) -> Notification:
    """Mark one of the user's notifications read; the first read time sticks."""
    with connect() as conn:
        conn.execute(
            "UPDATE notifications SET read_at = COALESCE(read_at, ?) WHERE id = ? AND user_id = ?",
            (now_iso(now), notification_id, user_id),
        )
        row = conn.execute(
            "SELECT * FROM notifications WHERE id = ? AND user_id = ?",
            (notification_id, user_id),
        ).fetchone()
    if row is None:
        raise NotFoundError(f"notification {notification_id} not found")
    return _row_to_notification(row)


def _row_to_notification(row: Any) -> Notification:
    return Notification(
        id=int(row["id"]),
        user_id=str(row["user_id"]),
        title=str(row["title"]),
        content=str(row["content"]),
        type=str(row["type"]),
        created_at=str(row["created_at"]),
        read_at=str(row["read_at"]) if row["read_at"] else None,
    )


__all__ = [
    "DEFAULT_DUE_DAYS",
    "DEFAULT_OVERDUE_DAYS",
    "create_notification",
    "default_rule",
    "get_effective_rule",
    "get_rules_by_class_ids",
    "insert_notification",
    "list_notifications_for_user",
    "mark_notification_read",
    "upsert_rule",
]
