"""Gamified challenge tasks: progress counters and exactly-once reward claims.

Each (user, task) row moves pending -> completed -> claimed. ``progress_value``
and ``completed`` only ever go up. A claim is one conditional UPDATE
(``claimed = 0 AND completed = 1``) followed by the point credit inside the
same write transaction, so duplicate or concurrent claims credit at most once.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from .attempts import list_attempts_by_user
from .classroom import count_completed_assignments
from .db import connect, now_iso
from .errors import AlreadyClaimedError, NotCompletedError, NotFoundError
from .models import ChallengeProgress, ChallengeTask, ClaimResult
from .stats import AccuracyStats, study_streak, weekly_stats

CHALLENGE_TASKS: tuple[ChallengeTask, ...] = (
    ChallengeTask(
        id="practice-10",
        title="Practice run",
        description="Answer 10 practice questions",
        goal_type="count",
        goal_value=10,
        reward_points=10,
        metric="attempts",
    ),
    ChallengeTask(
        id="streak-3",
        title="Keep it going",
        description="Study three days in a row",
        goal_type="streak",
        goal_value=3,
        reward_points=15,
        metric="streak",
    ),
    ChallengeTask(
        id="accuracy-80",
        title="Sharp week",
        description="Reach 80% accuracy over the last 7 days with at least 10 questions",
        goal_type="accuracy",
        goal_value=80,
        reward_points=20,
        metric="weekly_accuracy",
        min_attempts=10,
    ),
    ChallengeTask(
        id="assignment-1",
        title="Homework hero",
        description="Complete one assignment",
        goal_type="count",
        goal_value=1,
        reward_points=12,
        metric="assignments",
    ),
)
TASKS_BY_ID: dict[str, ChallengeTask] = {task.id: task for task in CHALLENGE_TASKS}


@dataclass(slots=True)
class ChallengeMetrics:
    attempts: int
    streak: int
    weekly: AccuracyStats
    assignments: int


def collect_metrics(user_id: str, now: datetime | None = None) -> ChallengeMetrics:
    return ChallengeMetrics(
        attempts=len(list_attempts_by_user(user_id)),
        streak=study_streak(user_id, now),
        weekly=weekly_stats(user_id, now),
        assignments=count_completed_assignments(user_id),
    )


def measure(task: ChallengeTask, metrics: ChallengeMetrics) -> tuple[float, bool]:
    """Return (progress_value, goal_reached) for one task."""
    if task.goal_type == "accuracy":
        value = float(metrics.weekly.accuracy)
        return value, value >= task.goal_value and metrics.weekly.total >= task.min_attempts
    if task.metric == "streak":
        value = float(metrics.streak)
    elif task.metric == "assignments":
        value = float(metrics.assignments)
    else:
        value = float(metrics.attempts)
    return value, value >= task.goal_value


def sync_challenge_progress(user_id: str, *, now: datetime | None = None) -> dict[str, ChallengeProgress]:
    """Recompute every task's counter and fold it into the stored progress."""
    metrics = collect_metrics(user_id, now)
    timestamp = now_iso(now)
    with connect() as conn:
        for task in CHALLENGE_TASKS:
            value, reached = measure(task, metrics)
            conn.execute(
                """
                INSERT INTO challenge_progress
                    (user_id, task_id, progress_value, completed, claimed, completed_at, updated_at)
                VALUES (?, ?, ?, ?, 0, ?, ?)
                ON CONFLICT(user_id, task_id) DO UPDATE SET
                    progress_value = MAX(progress_value, excluded.progress_value),
                    completed = MAX(completed, excluded.completed),
                    completed_at = COALESCE(completed_at, excluded.completed_at),
                    updated_at = excluded.updated_at
                """,
                (user_id, task.id, value, int(reached), timestamp if reached else None, timestamp),
            )
    return get_challenge_progress(user_id)


def get_challenge_progress(user_id: str) -> dict[str, ChallengeProgress]:
    with connect() as conn:
        rows = conn.execute(
            "SELECT * FROM challenge_progress WHERE user_id = ?", (user_id,)
        ).fetchall()
    return {str(row["task_id"]): _row_to_progress(row) for row in rows}


def challenge_status(user_id: str, *, now: datetime | None = None) -> list[dict[str, object]]:
    progress = sync_challenge_progress(user_id, now=now)
    status: list[dict[str, object]] = []
    for task in CHALLENGE_TASKS:
        entry = progress.get(task.id) or ChallengeProgress(task.id, 0.0, False, False)
        status.append(
            {
                **task.to_dict(),
                "progress": entry.progress_value,
                "completed": entry.completed,
                "claimed": entry.claimed,
            }
        )
    return status


def claim_challenge(user_id: str, task_id: str, *, now: datetime | None = None) -> ClaimResult:
    """Credit a completed task's reward exactly once.

    Raises NotFoundError for an unknown task and NotCompletedError when the
    goal is not reached. A repeated claim is answered as a success that
    awards nothing.
    """
    task = TASKS_BY_ID.get(task_id)
    if task is None:
        raise NotFoundError(f"challenge {task_id} not found")
    sync_challenge_progress(user_id, now=now)
    try:
        _claim_once(user_id, task, now_iso(now))
    except AlreadyClaimedError:
        logger.info("Challenge {} already claimed by user {}", task_id, user_id)
        return ClaimResult(task_id=task_id, claimed=True, points_awarded=0, already_claimed=True)
    logger.info("User {} claimed {} for {} points", user_id, task_id, task.reward_points)
    return ClaimResult(task_id=task_id, claimed=True, points_awarded=task.reward_points)


def _claim_once(user_id: str, task: ChallengeTask, timestamp: str) -> None:
    with connect() as conn:
        cursor = conn.execute(
            """
            UPDATE challenge_progress
            SET claimed = 1, claimed_at = ?, updated_at = ?
            WHERE user_id = ? AND task_id = ? AND completed = 1 AND claimed = 0
            """,
            (timestamp, timestamp, user_id, task.id),
        )
        if cursor.rowcount == 0:
            row = conn.execute(
                "SELECT completed, claimed FROM challenge_progress WHERE user_id = ? AND task_id = ?",
                (user_id, task.id),
            ).fetchone()
            if row is None or not row["completed"]:
                raise NotCompletedError(f"challenge {task.id} is not completed")
            raise AlreadyClaimedError(f"challenge {task.id} already claimed")
        credit_points(conn, user_id, f"challenge:{task.id}", task.reward_points, timestamp)


def credit_points(
    conn: sqlite3.Connection,
    user_id: str,
    source: str,
    points: int,
    timestamp: str,
) -> None:
    """Add ``points`` to the user's balance inside the caller's transaction."""
    conn.execute(
        "INSERT INTO point_events (user_id, source, points, created_at) VALUES (?, ?, ?, ?)",
        (user_id, source, points, timestamp),
    )
    conn.execute(
        """
        INSERT INTO point_balances (user_id, points, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            points = points + excluded.points,
            updated_at = excluded.updated_at
        """,
        (user_id, points, timestamp),
    )


def get_points(user_id: str) -> int:
    with connect() as conn:
        row = conn.execute(
            "SELECT points FROM point_balances WHERE user_id = ?", (user_id,)
        ).fetchone()
    return int(row["points"]) if row else 0


def _row_to_progress(row: Any) -> ChallengeProgress:
    return ChallengeProgress(
        task_id=str(row["task_id"]),
        progress_value=float(row["progress_value"]),
        completed=bool(row["completed"]),
        claimed=bool(row["claimed"]),
        completed_at=str(row["completed_at"]) if row["completed_at"] else None,
        claimed_at=str(row["claimed_at"]) if row["claimed_at"] else None,
    )


__all__ = [
    "CHALLENGE_TASKS",
    "ChallengeMetrics",
    "TASKS_BY_ID",
    "challenge_status",
    "claim_challenge",
    "collect_metrics",
    "credit_points",
    "get_challenge_progress",
    "get_points",
    "measure",
    "sync_challenge_progress",
]
