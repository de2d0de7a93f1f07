"""K12 Study: mastery tracking, study plans, challenges and assignment reminders."""

from .attempts import grade_answer, record_attempt
from .challenges import claim_challenge, sync_challenge_progress
from .db import init_db
from .mastery import aggregate_mastery, mastery_for_user
from .plans import get_or_generate_study_plan, refresh_study_plan
from .ranking import rank_weak_points
from .reminders import run_assignment_reminders
from .selector import diagnostic_questions, next_question

__all__ = [
    "aggregate_mastery",
    "claim_challenge",
    "diagnostic_questions",
    "get_or_generate_study_plan",
    "grade_answer",
    "init_db",
    "mastery_for_user",
    "next_question",
    "rank_weak_points",
    "record_attempt",
    "refresh_study_plan",
    "run_assignment_reminders",
    "sync_challenge_progress",
]
