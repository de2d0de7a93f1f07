"""Tests for plans.py: generation, refresh by replacement, get-or-generate."""

from __future__ import annotations

from datetime import datetime, timezone

from k12_study.attempts import record_attempt
from k12_study.db import connect
from k12_study.models import AttemptInput, MasteryEntry
from k12_study.plans import (
    MAX_RECOMMENDED_COUNT,
    flatten_plan_items,
    generate_study_plan,
    get_or_generate_study_plan,
    get_study_plan,
    recommended_count,
    refresh_study_plan,
    refresh_study_plans,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _entry(correct, total):
    return MasteryEntry(knowledge_point_id="kp", title="kp", correct_count=correct, total_count=total)


def _answer(kp_id, question_id, correct, user_id="u1"):
    record_attempt(
        AttemptInput(
            user_id=user_id,
            question_id=question_id,
            subject="math",
            knowledge_point_id=kp_id,
            correct=correct,
        )
    )


class TestRecommendedCount:
    def test_unpracticed_gets_most(self):
        assert recommended_count(_entry(0, 0)) == 8

    def test_low_ratio_bonus(self):
        assert recommended_count(_entry(1, 3)) == 8
        assert recommended_count(_entry(3, 3)) == 6
        assert recommended_count(_entry(1, 7)) == 7

    def test_well_practiced(self):
        assert recommended_count(_entry(18, 20)) == 4

    def test_never_above_cap(self):
        for total in range(0, 30):
            for correct in range(0, total + 1):
                assert recommended_count(_entry(correct, total)) <= MAX_RECOMMENDED_COUNT


class TestGenerate:
    def test_new_user_gets_start_plan(self, seeded):
        plan = generate_study_plan("u1", "math", now=NOW)
        assert [item.priority_rank for item in plan.items] == [1, 2, 3, 4]
        assert plan.items[0].knowledge_point_id == "math-4-area"
        assert [item.due_date for item in plan.items] == [
            "2026-03-02",
            "2026-03-03",
            "2026-03-04",
            "2026-03-05",
        ]
        assert all(item.recommended_count == 8 for item in plan.items)

    def test_subject_without_content_gives_empty_plan(self, seeded):
        plan = generate_study_plan("u1", "science", now=NOW)
        assert plan.items == []
        assert get_study_plan("u1", "science") is not None

    def test_weakest_point_comes_first(self, seeded):
        for _ in range(3):
            _answer("math-4-area", "q-area-1", True)
        _answer("math-4-fractions", "q-frac-1", False)
        plan = generate_study_plan("u1", "math", now=NOW)
        ids = [item.knowledge_point_id for item in plan.items]
        assert ids[-1] == "math-4-area"
        assert ids[0] == "math-4-division"


class TestRefresh:
    def test_refresh_twice_is_stable(self, seeded):
        _answer("math-4-division", "q-div-1", False)
        first = refresh_study_plan("u1", "math", now=NOW)
        second = refresh_study_plan("u1", "math", now=NOW)
        assert first.items == second.items
        assert first.id == second.id
        assert get_study_plan("u1", "math").items == second.items

    def test_refresh_replaces_items(self, seeded):
        before = refresh_study_plan("u1", "math", now=NOW)
        for _ in range(4):
            _answer("math-4-area", "q-area-1", True)
        after = refresh_study_plan("u1", "math", now=NOW)
        assert before.items[0].knowledge_point_id == "math-4-area"
        assert after.items[-1].knowledge_point_id == "math-4-area"
        assert len(get_study_plan("u1", "math").items) == 4

    def test_one_plan_per_user_and_subject(self, seeded):
        for _ in range(3):
            refresh_study_plan("u1", "math", now=NOW)
        with connect() as conn:
            plans = conn.execute("SELECT COUNT(*) FROM study_plans").fetchone()[0]
            items = conn.execute("SELECT COUNT(*) FROM study_plan_items").fetchone()[0]
        assert plans == 1
        assert items == 4

    def test_refresh_many_subjects(self, seeded):
        plans = refresh_study_plans("u1", ["math", "english"], now=NOW)
        flat = flatten_plan_items(plans)
        assert {item["subject"] for item in flat} == {"math", "english"}
        assert len(flat) == 5


class TestGetOrGenerate:
    def test_returns_stored_plan_without_recomputing(self, seeded):
        stored = get_or_generate_study_plan("u1", "math", now=NOW)
        for _ in range(4):
            _answer("math-4-area", "q-area-1", True)
        again = get_or_generate_study_plan("u1", "math", now=NOW)
        assert again.items == stored.items
        assert again.id == stored.id
