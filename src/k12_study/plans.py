"""Study plan generation: weak points become an ordered remediation list.

One plan is kept per (user, subject). Generating or refreshing always
recomputes from current mastery and replaces the stored items, so repeated
refreshes with no new attempts produce the same items. Read paths use
``get_or_generate_study_plan`` to avoid recomputing on every page load.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from loguru import logger

from .db import connect, new_id, normalize_datetime, now_iso
from .mastery import mastery_for_user
from .models import MasteryEntry, StudyPlan, StudyPlanItem
from .ranking import rank_weak_points

PLAN_SIZE = 5
MAX_RECOMMENDED_COUNT = 10
LOW_RATIO_THRESHOLD = 0.5
LOW_RATIO_BONUS = 2

# (attempts practiced below this, recommended count); unpracticed points get the most.
RECOMMENDED_COUNT_TABLE: tuple[tuple[int, int], ...] = (
    (1, 8),
    (5, 6),
    (10, 5),
)
DEFAULT_RECOMMENDED_COUNT = 4


def recommended_count(entry: MasteryEntry) -> int:
    count = DEFAULT_RECOMMENDED_COUNT
    for upper_bound, value in RECOMMENDED_COUNT_TABLE:
        if entry.total_count < upper_bound:
            count = value
            break
    if entry.practiced and entry.ratio < LOW_RATIO_THRESHOLD:
        count += LOW_RATIO_BONUS
    return min(count, MAX_RECOMMENDED_COUNT)


def build_plan_items(
    entries: Sequence[MasteryEntry],
    today: date,
    size: int = PLAN_SIZE,
) -> list[StudyPlanItem]:
    """Rank weak points and turn the top ``size`` into plan items, one per day."""
    ranked = rank_weak_points(entries, size)
    return [
        StudyPlanItem(
            knowledge_point_id=entry.knowledge_point_id,
            priority_rank=index + 1,
            recommended_count=recommended_count(entry),
            due_date=(today + timedelta(days=index)).isoformat(),
        )
        for index, entry in enumerate(ranked)
    ]


def generate_study_plan(user_id: str, subject: str, *, now: datetime | None = None) -> StudyPlan:
    """Recompute the plan for (user, subject) and overwrite the stored one.

    A user with no attempts gets a plan built from unpracticed knowledge
    points; a subject without knowledge points gets an empty plan.
    """
    moment = normalize_datetime(now or datetime.now(timezone.utc))
    entries = mastery_for_user(user_id, subject, full_coverage=True)
    items = build_plan_items(entries, moment.date())
    return _replace_plan(user_id, subject, items, now_iso(moment))


def refresh_study_plan(user_id: str, subject: str, *, now: datetime | None = None) -> StudyPlan:
    plan = generate_study_plan(user_id, subject, now=now)
    logger.info("Refreshed {} plan for user {} ({} items)", subject, user_id, len(plan.items))
    return plan


def get_study_plan(user_id: str, subject: str) -> StudyPlan | None:
    with connect() as conn:
        row = conn.execute(
            "SELECT * FROM study_plans WHERE user_id = ? AND subject = ?",
            (user_id, subject),
        ).fetchone()
        if row is None:
            return None
        item_rows = conn.execute(
            "SELECT * FROM study_plan_items WHERE plan_id = ? ORDER BY priority_rank, id",
            (row["id"],),
        ).fetchall()
    return _row_to_plan(row, item_rows)


def get_or_generate_study_plan(user_id: str, subject: str, *, now: datetime | None = None) -> StudyPlan:
    existing = get_study_plan(user_id, subject)
    if existing is not None:
        return existing
    return generate_study_plan(user_id, subject, now=now)


def get_or_generate_study_plans(
    user_id: str,
    subjects: Iterable[str],
    *,
    now: datetime | None = None,
) -> list[StudyPlan]:
    return [get_or_generate_study_plan(user_id, subject, now=now) for subject in subjects]


def refresh_study_plans(
    user_id: str,
    subjects: Iterable[str],
    *,
    now: datetime | None = None,
) -> list[StudyPlan]:
    return [refresh_study_plan(user_id, subject, now=now) for subject in subjects]


def flatten_plan_items(plans: Iterable[StudyPlan]) -> list[dict[str, object]]:
    """Items of several plans in one list, each tagged with its subject."""
    return [
        {**item.to_dict(), "subject": plan.subject}
        for plan in plans
        for item in plan.items
    ]


def _replace_plan(user_id: str, subject: str, items: list[StudyPlanItem], generated_at: str) -> StudyPlan:
    with connect() as conn:
        # Upsert first so the write lock is held before the plan id is read back.
        conn.execute(
            """
            INSERT INTO study_plans (id, user_id, subject, generated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, subject) DO UPDATE SET generated_at = excluded.generated_at
            """,
            (new_id("plan"), user_id, subject, generated_at),
        )
        plan_id = str(
            conn.execute(
                "SELECT id FROM study_plans WHERE user_id = ? AND subject = ?",
                (user_id, subject),
            ).fetchone()["id"]
        )
        conn.execute("DELETE FROM study_plan_items WHERE plan_id = ?", (plan_id,))
        conn.executemany(
            """
            INSERT INTO study_plan_items (plan_id, knowledge_point_id, priority_rank, recommended_count, due_date)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (plan_id, item.knowledge_point_id, item.priority_rank, item.recommended_count, item.due_date)
                for item in items
            ],
        )
    return StudyPlan(id=plan_id, user_id=user_id, subject=subject, generated_at=generated_at, items=items)


def _row_to_plan(row: Any, item_rows: Sequence[Any]) -> StudyPlan:
    return StudyPlan(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        subject=str(row["subject"]),
        generated_at=str(row["generated_at"]),
        items=[
            StudyPlanItem(
                knowledge_point_id=str(item["knowledge_point_id"]),
                priority_rank=int(item["priority_rank"]),
                recommended_count=int(item["recommended_count"]),
                due_date=str(item["due_date"]),
            )
            for item in item_rows
        ],
    )


__all__ = [
    "MAX_RECOMMENDED_COUNT",
    "PLAN_SIZE",
    "RECOMMENDED_COUNT_TABLE",
    "build_plan_items",
    "flatten_plan_items",
    "generate_study_plan",
    "get_or_generate_study_plan",
    "get_or_generate_study_plans",
    "get_study_plan",
    "recommended_count",
    "refresh_study_plan",
    "refresh_study_plans",
]
