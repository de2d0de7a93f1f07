from __future__ import annotations

import os
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH = DATA_DIR / "k12_study.db"
DB_PATH = Path(os.environ.get("K12_STUDY_DB_PATH", DEFAULT_DB_PATH))

# Seconds a writer waits on a locked database before giving up.
BUSY_TIMEOUT_SECONDS = 10.0


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection with foreign keys enforced.

    The transaction is committed when the block exits cleanly and rolled back
    when it raises.
    """

    connection = _open_connection()
    try:
        yield connection
        connection.commit()
    except BaseException:
        connection.rollback()
        raise
    finally:
        connection.close()


def _open_connection() -> sqlite3.Connection:
    _ensure_data_dir()
    connection = sqlite3.connect(DB_PATH, timeout=BUSY_TIMEOUT_SECONDS)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def _ensure_data_dir() -> None:
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def now_iso(value: datetime | None = None) -> str:
    """Return the current UTC timestamp (seconds precision) as ISO 8601."""

    moment = value or datetime.now(timezone.utc)
    return normalize_datetime(moment).isoformat(timespec="seconds")


def normalize_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: str) -> datetime:
    """Parse a stored timestamp; naive values are taken as UTC.

    Raises ValueError for malformed input.
    """

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return normalize_datetime(datetime.fromisoformat(text))


def new_id(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(6)}"


def init_db() -> None:
    """Initialise the database schema if tables are missing."""

    with connect() as connection:
        _create_tables(connection)


def _create_tables(connection: sqlite3.Connection) -> None:
    _create_content_tables(connection)
    _create_progress_tables(connection)
    _create_classroom_tables(connection)
    _create_notification_tables(connection)


def _create_content_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS knowledge_points (
            id TEXT PRIMARY KEY,
            subject TEXT NOT NULL,
            grade TEXT NOT NULL,
            title TEXT NOT NULL,
            chapter TEXT NOT NULL DEFAULT ''
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS questions (
            id TEXT PRIMARY KEY,
            subject TEXT NOT NULL,
            grade TEXT NOT NULL,
            knowledge_point_id TEXT NOT NULL,
            stem TEXT NOT NULL,
            options_json TEXT NOT NULL DEFAULT '[]',
            answer TEXT NOT NULL,
            explanation TEXT NOT NULL DEFAULT '',
            active INTEGER NOT NULL DEFAULT 1
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_questions_subject_grade ON questions(subject, grade)"
    )


def _create_progress_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS question_attempts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            question_id TEXT NOT NULL,
            subject TEXT NOT NULL,
            knowledge_point_id TEXT NOT NULL,
            correct INTEGER NOT NULL,
            answer TEXT NOT NULL DEFAULT '',
            reason TEXT,
            source TEXT NOT NULL DEFAULT 'practice',
            created_at TEXT NOT NULL,
            CHECK(source IN ('practice','diagnostic','assignment'))
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_attempts_user ON question_attempts(user_id, created_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS study_plans (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            subject TEXT NOT NULL,
            generated_at TEXT NOT NULL,
            UNIQUE(user_id, subject)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS study_plan_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            plan_id TEXT NOT NULL,
            knowledge_point_id TEXT NOT NULL,
            priority_rank INTEGER NOT NULL,
            recommended_count INTEGER NOT NULL,
            due_date TEXT NOT NULL,
            FOREIGN KEY(plan_id) REFERENCES study_plans(id) ON DELETE CASCADE
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS challenge_progress (
            user_id TEXT NOT NULL,
            task_id TEXT NOT NULL,
            progress_value REAL NOT NULL DEFAULT 0,
            completed INTEGER NOT NULL DEFAULT 0,
            claimed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            claimed_at TEXT,
            updated_at TEXT NOT NULL,
            PRIMARY KEY(user_id, task_id),
            CHECK(claimed = 0 OR completed = 1)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS point_balances (
            user_id TEXT PRIMARY KEY,
            points INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS point_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            source TEXT NOT NULL,
            points INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            UNIQUE(user_id, source)
        )
        """
    )


def _create_classroom_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS classes (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            teacher_id TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT 'math',
            grade TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS class_students (
            class_id TEXT NOT NULL,
            student_id TEXT NOT NULL,
            joined_at TEXT NOT NULL,
            PRIMARY KEY(class_id, student_id),
            FOREIGN KEY(class_id) REFERENCES classes(id) ON DELETE CASCADE
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS parent_links (
            parent_id TEXT NOT NULL,
            student_id TEXT NOT NULL,
            PRIMARY KEY(parent_id, student_id)
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS assignments (
            id TEXT PRIMARY KEY,
            class_id TEXT NOT NULL,
            title TEXT NOT NULL,
            due_date TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY(class_id) REFERENCES classes(id) ON DELETE CASCADE
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS assignment_progress (
            assignment_id TEXT NOT NULL,
            student_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            completed_at TEXT,
            PRIMARY KEY(assignment_id, student_id),
            FOREIGN KEY(assignment_id) REFERENCES assignments(id) ON DELETE CASCADE
        )
        """
    )


def _create_notification_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS notification_rules (
            class_id TEXT PRIMARY KEY,
            enabled INTEGER NOT NULL DEFAULT 1,
            due_days INTEGER NOT NULL DEFAULT 2,
            overdue_days INTEGER NOT NULL DEFAULT 0,
            include_parents INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            type TEXT NOT NULL,
            created_at TEXT NOT NULL,
            read_at TEXT
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS reminder_deliveries (
            assignment_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            trigger_type TEXT NOT NULL,
            window_bucket TEXT NOT NULL,
            created_at TEXT NOT NULL,
            PRIMARY KEY(assignment_id, user_id, trigger_type, window_bucket)
        )
        """
    )


__all__ = [
    "connect",
    "DB_PATH",
    "DEFAULT_DB_PATH",
    "init_db",
    "new_id",
    "normalize_datetime",
    "now_iso",
    "parse_iso",
]
