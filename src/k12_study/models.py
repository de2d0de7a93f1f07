from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, cast

from .errors import ValidationError

AttemptSource = Literal["practice", "diagnostic", "assignment"]
SelectionMode = Literal["normal", "wrong", "adaptive"]
GoalType = Literal["count", "streak", "accuracy"]
ProgressStatus = Literal["pending", "in_progress", "completed"]
TriggerType = Literal["assignment_due", "assignment_overdue"]

ATTEMPT_SOURCES: tuple[AttemptSource, ...] = ("practice", "diagnostic", "assignment")
SELECTION_MODES: tuple[SelectionMode, ...] = ("normal", "wrong", "adaptive")
PROGRESS_STATUSES: tuple[ProgressStatus, ...] = ("pending", "in_progress", "completed")


@dataclass(slots=True)
class KnowledgePoint:
    id: str
    subject: str
    grade: str
    title: str
    chapter: str = ""


@dataclass(slots=True)
class Question:
    id: str
    subject: str
    grade: str
    knowledge_point_id: str
    stem: str
    answer: str
    options: list[str] = field(default_factory=list)
    explanation: str = ""
    active: bool = True


@dataclass(slots=True)
class AttemptInput:
    """Fields a caller supplies to append an attempt to the ledger."""

    user_id: str
    question_id: str
    subject: str
    knowledge_point_id: str
    correct: bool
    answer: str = ""
    reason: str | None = None
    source: AttemptSource = "practice"
    created_at: str | None = None

    def validate(self) -> None:
        missing = [
            name
            for name in ("user_id", "question_id", "subject", "knowledge_point_id")
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"missing fields: {', '.join(missing)}")
        self.source = ensure_attempt_source(self.source)


@dataclass(slots=True)
class Attempt:
    id: int
    user_id: str
    question_id: str
    subject: str
    knowledge_point_id: str
    correct: bool
    answer: str
    reason: str | None
    source: str
    created_at: str


@dataclass(slots=True)
class MasteryEntry:
    knowledge_point_id: str
    title: str
    correct_count: int
    total_count: int
    last_attempt_at: str | None = None

    @property
    def ratio(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.correct_count / self.total_count

    @property
    def practiced(self) -> bool:
        return self.total_count > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "knowledgePointId": self.knowledge_point_id,
            "title": self.title,
            "correctCount": self.correct_count,
            "totalCount": self.total_count,
            "ratio": round(self.ratio, 4),
            "lastAttemptAt": self.last_attempt_at,
        }


@dataclass(slots=True)
class SubjectMastery:
    subject: str
    ratio: float
    practiced_points: int
    total_points: int
    correct_count: int
    total_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "subject": self.subject,
            "ratio": round(self.ratio, 4),
            "practicedPoints": self.practiced_points,
            "totalPoints": self.total_points,
            "correctCount": self.correct_count,
            "totalCount": self.total_count,
        }


@dataclass(slots=True)
class StudyPlanItem:
    knowledge_point_id: str
    priority_rank: int
    recommended_count: int
    due_date: str

    def to_dict(self) -> dict[str, object]:
        return {
            "knowledgePointId": self.knowledge_point_id,
            "priorityRank": self.priority_rank,
            "recommendedCount": self.recommended_count,
            "dueDate": self.due_date,
        }


@dataclass(slots=True)
class StudyPlan:
    id: str
    user_id: str
    subject: str
    generated_at: str
    items: list[StudyPlanItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "subject": self.subject,
            "generatedAt": self.generated_at,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True, slots=True)
class ChallengeTask:
    id: str
    title: str
    description: str
    goal_type: GoalType
    goal_value: float
    reward_points: int
    metric: str = "attempts"
    # Accuracy tasks also need this many attempts in the window.
    min_attempts: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "goalType": self.goal_type,
            "goalValue": self.goal_value,
            "rewardPoints": self.reward_points,
        }


@dataclass(slots=True)
class ChallengeProgress:
    task_id: str
    progress_value: float
    completed: bool
    claimed: bool
    completed_at: str | None = None
    claimed_at: str | None = None


@dataclass(slots=True)
class ClaimResult:
    task_id: str
    claimed: bool
    points_awarded: int
    already_claimed: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": True,
            "taskId": self.task_id,
            "claimed": self.claimed,
            "pointsAwarded": self.points_awarded,
            "alreadyClaimed": self.already_claimed,
        }


@dataclass(slots=True)
class ClassRoom:
    id: str
    name: str
    teacher_id: str
    subject: str
    grade: str
    created_at: str


@dataclass(slots=True)
class Assignment:
    id: str
    class_id: str
    title: str
    due_date: str
    created_at: str


@dataclass(slots=True)
class AssignmentProgress:
    assignment_id: str
    student_id: str
    status: str
    completed_at: str | None = None


@dataclass(slots=True)
class NotificationRule:
    class_id: str
    enabled: bool = True
    due_days: int = 2
    overdue_days: int = 0
    include_parents: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "classId": self.class_id,
            "enabled": self.enabled,
            "dueDays": self.due_days,
            "overdueDays": self.overdue_days,
            "includeParents": self.include_parents,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(slots=True)
class Notification:
    id: int
    user_id: str
    title: str
    content: str
    type: str
    created_at: str
    read_at: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content,
            "type": self.type,
            "createdAt": self.created_at,
            "readAt": self.read_at,
        }


def ensure_attempt_source(value: str) -> AttemptSource:
    normalized = str(value or "").strip().lower()
    if normalized not in ATTEMPT_SOURCES:
        raise ValidationError(f"Unsupported attempt source: {value}")
    return cast(AttemptSource, normalized)


def ensure_selection_mode(value: str | None) -> SelectionMode:
    """Normalise a selector mode; unset means normal."""

    if value is None or not value.strip():
        return "normal"
    normalized = value.strip().lower()
    if normalized not in SELECTION_MODES:
        raise ValidationError(f"Unsupported selection mode: {value}")
    return cast(SelectionMode, normalized)


def ensure_progress_status(value: str) -> ProgressStatus:
    normalized = str(value or "").strip().lower()
    if normalized not in PROGRESS_STATUSES:
        raise ValidationError(f"Unsupported assignment status: {value}")
    return cast(ProgressStatus, normalized)


__all__ = [
    "ATTEMPT_SOURCES",
    "Assignment",
    "AssignmentProgress",
    "Attempt",
    "AttemptInput",
    "AttemptSource",
    "ChallengeProgress",
    "ChallengeTask",
    "ClaimResult",
    "ClassRoom",
    "GoalType",
    "KnowledgePoint",
    "MasteryEntry",
    "Notification",
    "NotificationRule",
    "PROGRESS_STATUSES",
    "ProgressStatus",
    "Question",
    "SELECTION_MODES",
    "SelectionMode",
    "StudyPlan",
    "StudyPlanItem",
    "SubjectMastery",
    "TriggerType",
    "ensure_attempt_source",
    "ensure_progress_status",
    "ensure_selection_mode",
]
