"""Assignment reminder runs for a teacher's classes.

A run is triggered externally (for example a daily cron hitting the HTTP
endpoint). Each non-completed student of an assignment inside the due-soon or
overdue window gets one notification, plus one per linked parent when the
class rule includes parents. A malformed class or assignment is skipped and
counted; it never aborts the run.

With de-duplication on, one delivery per (assignment, recipient, trigger,
UTC day of the run) is recorded and repeats inside the same day are
suppressed. It is off unless ``K12_STUDY_REMINDER_DEDUPE`` is set or the
caller passes ``dedupe=True``.
"""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from loguru import logger

from .classroom import (
    get_assignment_progress,
    get_assignments_by_class,
    get_class,
    get_class_student_ids,
    get_classes_by_teacher,
    get_parent_ids,
)
from .db import connect, normalize_datetime, now_iso, parse_iso
from .errors import EngineError, NotFoundError
from .models import Assignment, ClassRoom, NotificationRule, TriggerType
from .notifications import get_effective_rule, insert_notification

DAY_SECONDS = 24 * 60 * 60
DEDUPE_DEFAULT = os.environ.get("K12_STUDY_REMINDER_DEDUPE", "").strip().lower() in {"1", "true", "yes", "on"}

TITLES: dict[str, str] = {
    "assignment_due": "Assignment due soon",
    "assignment_overdue": "Assignment overdue",
}


@dataclass(slots=True)
class ReminderRunReport:
    classes: int = 0
    assignments: int = 0
    students: int = 0
    parents: int = 0
    skipped: int = 0
    suppressed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def day_offsets(due_at: datetime, now: datetime) -> tuple[int, int]:
    """Return (dueDiffDays, overdueDiffDays), both rounded up to whole days."""
    delta = (normalize_datetime(due_at) - normalize_datetime(now)).total_seconds()
    due_diff = math.ceil(delta / DAY_SECONDS)
    overdue_diff = max(0, math.ceil(-delta / DAY_SECONDS))
    return due_diff, overdue_diff


def reminder_trigger(due_at: datetime, now: datetime, rule: NotificationRule) -> TriggerType | None:
    """Which reminder, if any, an assignment due at ``due_at`` gets under ``rule``.

    ``overdue_days <= 0`` leaves the overdue window open-ended.
    """
    due_diff, overdue_diff = day_offsets(due_at, now)
    is_overdue = normalize_datetime(due_at) < normalize_datetime(now)
    due_soon = 0 <= due_diff <= rule.due_days
    within_overdue = rule.overdue_days <= 0 or overdue_diff <= rule.overdue_days
    if not (due_soon or (is_overdue and within_overdue)):
        return None
    # Less than a day past due still rounds to dueDiffDays == 0.
    return "assignment_overdue" if is_overdue else "assignment_due"


def reminder_content(klass: ClassRoom, assignment: Assignment, due_at: datetime) -> str:
    return f"{klass.name} · {assignment.title} (due {due_at.date().isoformat()})"


def target_classes(teacher_id: str, class_id: str | None = None) -> list[ClassRoom]:
    """Classes a run covers; an explicit class must belong to the teacher."""
    if class_id:
        klass = get_class(class_id)
        if klass is None or klass.teacher_id != teacher_id:
            raise NotFoundError("class not found")
        return [klass]
    return get_classes_by_teacher(teacher_id)


def run_assignment_reminders(
    teacher_id: str,
    class_id: str | None = None,
    *,
    now: datetime | None = None,
    dedupe: bool | None = None,
) -> ReminderRunReport:
    moment = normalize_datetime(now or datetime.now(timezone.utc))
    use_dedupe = DEDUPE_DEFAULT if dedupe is None else dedupe
    report = ReminderRunReport()

    for klass in target_classes(teacher_id, class_id):
        try:
            rule = get_effective_rule(klass.id)
        except (EngineError, ValueError) as exc:
            logger.warning("Skipping class {}: {}", klass.id, exc)
            report.skipped += 1
            continue
        if not rule.enabled:
            continue
        report.classes += 1
        student_ids = get_class_student_ids(klass.id)
        for assignment in get_assignments_by_class(klass.id):
            try:
                due_at = parse_iso(assignment.due_date)
            except ValueError:
                logger.warning(
                    "Skipping assignment {} with malformed due date {!r}",
                    assignment.id,
                    assignment.due_date,
                )
                report.skipped += 1
                continue
            trigger = reminder_trigger(due_at, moment, rule)
            if trigger is None:
                continue
            report.assignments += 1
            _notify_assignment(klass, assignment, due_at, trigger, rule, student_ids, moment, use_dedupe, report)

    logger.info(
        "Reminder run for teacher {}: {} students, {} parents, {} skipped, {} suppressed",
        teacher_id,
        report.students,
        report.parents,
        report.skipped,
        report.suppressed,
    )
    return report


def _notify_assignment(
    klass: ClassRoom,
    assignment: Assignment,
    due_at: datetime,
    trigger: TriggerType,
    rule: NotificationRule,
    student_ids: list[str],
    moment: datetime,
    use_dedupe: bool,
    report: ReminderRunReport,
) -> None:
    statuses = {item.student_id: item.status for item in get_assignment_progress(assignment.id)}
    title = TITLES[trigger]
    content = reminder_content(klass, assignment, due_at)
    bucket = moment.date().isoformat()
    timestamp = now_iso(moment)

    for student_id in student_ids:
        if statuses.get(student_id, "pending") == "completed":
            continue
        if _deliver(assignment.id, student_id, trigger, bucket, title, content, timestamp, use_dedupe):
            report.students += 1
        else:
            report.suppressed += 1
        if not rule.include_parents:
            continue
        for parent_id in get_parent_ids(student_id):
            if _deliver(assignment.id, parent_id, trigger, bucket, title, content, timestamp, use_dedupe):
                report.parents += 1
            else:
                report.suppressed += 1


def _deliver(
    assignment_id: str,
    user_id: str,
    trigger: TriggerType,
    bucket: str,
    title: str,
    content: str,
    timestamp: str,
    use_dedupe: bool,
) -> bool:
    """Create one notification; False when de-duplication suppressed it."""
    with connect() as conn:
        if use_dedupe:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO reminder_deliveries
                    (assignment_id, user_id, trigger_type, window_bucket, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (assignment_id, user_id, trigger, bucket, timestamp),
            )
            if cursor.rowcount == 0:
                return False
        insert_notification(conn, user_id, title, content, trigger, timestamp)
    return True


__all__ = [
    "DEDUPE_DEFAULT",
    "ReminderRunReport",
    "day_offsets",
    "reminder_content",
    "reminder_trigger",
    "run_assignment_reminders",
    "target_classes",
]
