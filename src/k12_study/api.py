"""JSON API routes. The authenticated user id arrives in the ``X-User-Id`` header."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, ConfigDict, Field

from .attempts import grade_answer
from .challenges import challenge_status, claim_challenge, get_points
from .classroom import get_classes_by_teacher
from .content import get_knowledge_point, get_question, get_subjects
from .diagnostic import DiagnosticAnswer, start_diagnostic, submit_diagnostic
from .drafting import draft_explanation, render_markdown
from .errors import NotFoundError, UnauthorizedError
from .mastery import mastery_for_user, subject_rollup
from .models import Question
from .notifications import get_rules_by_class_ids, list_notifications_for_user, mark_notification_read, upsert_rule
from .plans import flatten_plan_items, get_or_generate_study_plans, refresh_study_plans
from .ranking import rank_weak_points
from .reminders import run_assignment_reminders
from .report import weekly_report
from .selector import next_question

router = APIRouter(prefix="/api")

DEFAULT_SUBJECT = "math"
DEFAULT_GRADE = "4"


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("unauthorized")
    return x_user_id.strip()


def resolve_subjects(subject: str | None) -> list[str]:
    """``None`` means math, ``all`` means every subject with knowledge points."""
    if not subject:
        return [DEFAULT_SUBJECT]
    if subject == "all":
        return get_subjects() or [DEFAULT_SUBJECT]
    return [item.strip() for item in subject.split(",") if item.strip()]


def question_payload(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "stem": question.stem,
        "options": question.options,
        "knowledgePointId": question.knowledge_point_id,
    }


# ── Request bodies ───────────────────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SubmitRequest(CamelModel):
    question_id: str = Field(..., alias="questionId", min_length=1)
    answer: str = Field(..., min_length=1)
    reason: str | None = None


class NextRequest(CamelModel):
    subject: str | None = None
    grade: str | None = None
    knowledge_point_id: str | None = Field(None, alias="knowledgePointId")
    mode: str | None = None


class ExplanationRequest(CamelModel):
    question_id: str = Field(..., alias="questionId", min_length=1)


class DiagnosticStartRequest(CamelModel):
    subject: str | None = None
    grade: str | None = None


class DiagnosticAnswerBody(CamelModel):
    question_id: str = Field(..., alias="questionId")
    answer: str = ""
    reason: str | None = None


class DiagnosticSubmitRequest(CamelModel):
    subject: str = Field(..., min_length=1)
    grade: str = Field(..., min_length=1)
    answers: list[DiagnosticAnswerBody] = Field(..., min_length=1)


class PlanRefreshRequest(CamelModel):
    subject: str | None = None


class ClaimRequest(CamelModel):
    task_id: str = Field(..., alias="taskId", min_length=1)


class RuleRequest(CamelModel):
    class_id: str = Field(..., alias="classId", min_length=1)
    enabled: bool = True
    due_days: int = Field(2, alias="dueDays")
    overdue_days: int = Field(0, alias="overdueDays")
    include_parents: bool = Field(True, alias="includeParents")


class RunRequest(CamelModel):
    class_id: str | None = Field(None, alias="classId")


# ── Practice ─────────────────────────────────────────────────────────────────


@router.post("/practice/submit")
async def practice_submit(body: SubmitRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    attempt, expected, explanation = grade_answer(
        user_id, body.question_id, body.answer, reason=body.reason
    )
    return {"correct": attempt.correct, "answer": expected, "explanation": explanation}


@router.post("/practice/next")
async def practice_next(body: NextRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    subject, grade = body.subject, body.grade
    # the wrong book is only narrowed by filters the caller sent
    if body.mode != "wrong":
        subject = subject or DEFAULT_SUBJECT
        grade = grade or DEFAULT_GRADE
    question = next_question(user_id, subject, grade, body.knowledge_point_id, body.mode)
    return {"question": question_payload(question)}


@router.post("/practice/explanation")
async def practice_explanation(
    body: ExplanationRequest,
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    question = get_question(body.question_id)
    if question is None:
        raise NotFoundError("question not found")
    kp = get_knowledge_point(question.knowledge_point_id)
    drafted = draft_explanation(question, kp.title if kp else None)
    if drafted is not None:
        return {"data": drafted, "source": "ai"}
    return {
        "data": {
            "analysis": question.explanation,
            "steps": [],
            "hints": [],
            "html": render_markdown(question.explanation),
        },
        "source": "stored",
    }


# ── Diagnostic ───────────────────────────────────────────────────────────────


@router.post("/diagnostic/start")
async def diagnostic_start(
    body: DiagnosticStartRequest,
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    subject = body.subject or DEFAULT_SUBJECT
    grade = body.grade or DEFAULT_GRADE
    questions = start_diagnostic(subject, grade)
    return {
        "subject": subject,
        "grade": grade,
        "questions": [question_payload(question) for question in questions],
    }


@router.post("/diagnostic/submit")
async def diagnostic_submit(
    body: DiagnosticSubmitRequest,
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    answers = [
        DiagnosticAnswer(question_id=item.question_id, answer=item.answer, reason=item.reason)
        for item in body.answers
    ]
    return submit_diagnostic(user_id, body.subject, body.grade, answers)


# ── Plans, mastery, report ───────────────────────────────────────────────────


@router.get("/plan")
async def plan(subject: str | None = Query(None), user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    plans = get_or_generate_study_plans(user_id, resolve_subjects(subject))
    return {"plans": [p.to_dict() for p in plans], "items": flatten_plan_items(plans)}


@router.post("/plan/refresh")
async def plan_refresh(body: PlanRefreshRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    plans = refresh_study_plans(user_id, resolve_subjects(body.subject))
    return {"plans": [p.to_dict() for p in plans], "items": flatten_plan_items(plans)}


@router.get("/mastery")
async def mastery(subject: str | None = Query(None), user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    subjects = []
    for name in resolve_subjects(subject):
        entries = mastery_for_user(user_id, name)
        subjects.append(
            {
                **subject_rollup(name, entries).to_dict(),
                "entries": [entry.to_dict() for entry in entries],
                "weakPoints": [entry.to_dict() for entry in rank_weak_points(entries, 3)],
            }
        )
    return {"subjects": subjects}


@router.get("/report/weekly")
async def report_weekly(
    subjects: str | None = Query(None),
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    return weekly_report(user_id, resolve_subjects(subjects))


# ── Challenges ───────────────────────────────────────────────────────────────


@router.get("/challenges")
async def challenges(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    return {"tasks": challenge_status(user_id), "points": get_points(user_id)}


@router.post("/challenges/claim")
async def challenges_claim(body: ClaimRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    result = claim_challenge(user_id, body.task_id)
    return {**result.to_dict(), "points": get_points(user_id)}


# ── Notifications ────────────────────────────────────────────────────────────


@router.get("/teacher/notifications/rules")
async def notification_rules(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    classes = get_classes_by_teacher(user_id)
    rules = get_rules_by_class_ids(klass.id for klass in classes)
    return {
        "classes": [{"id": klass.id, "name": klass.name, "subject": klass.subject} for klass in classes],
        "rules": [rule.to_dict() for rule in rules],
    }


@router.post("/teacher/notifications/rules")
async def save_notification_rule(body: RuleRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    if not any(klass.id == body.class_id for klass in get_classes_by_teacher(user_id)):
        raise NotFoundError("class not found")
    rule = upsert_rule(
        body.class_id,
        enabled=body.enabled,
        due_days=body.due_days,
        overdue_days=body.overdue_days,
        include_parents=body.include_parents,
    )
    return {"data": rule.to_dict()}


@router.post("/teacher/notifications/run")
async def run_notifications(body: RunRequest, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    report = run_assignment_reminders(user_id, body.class_id)
    return {"data": report.to_dict()}


@router.get("/notifications")
async def notifications(user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    return {"data": [item.to_dict() for item in list_notifications_for_user(user_id)]}


@router.post("/notifications/{notification_id}/read")
async def read_notification(notification_id: int, user_id: str = Depends(current_user_id)) -> dict[str, Any]:
    return {"data": mark_notification_read(user_id, notification_id).to_dict()}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


__all__ = ["current_user_id", "resolve_subjects", "router"]
