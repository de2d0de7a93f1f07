"""Tests for mastery.py and ranking.py."""

from __future__ import annotations

import random

from k12_study.attempts import record_attempt
from k12_study.mastery import aggregate_mastery, mastery_for_user, mastery_for_users, subject_mastery, subject_rollup
from k12_study.models import Attempt, AttemptInput, KnowledgePoint, MasteryEntry
from k12_study.ranking import rank_weak_points, weak_points


def _make(kp_id, correct, *, question_id="q1", created_at="2026-03-01T10:00:00+00:00", index=0):
    return Attempt(
        id=index,
        user_id="u1",
        question_id=question_id,
        subject="math",
        knowledge_point_id=kp_id,
        correct=correct,
        answer="",
        reason=None,
        source="practice",
        created_at=created_at,
    )


def _entry(kp_id, correct, total, title=None):
    return MasteryEntry(knowledge_point_id=kp_id, title=title or kp_id, correct_count=correct, total_count=total)


class TestAggregate:
    def test_six_of_ten(self):
        attempts = [_make("K", i < 6, index=i) for i in range(10)]
        [entry] = aggregate_mastery(attempts)
        assert entry.knowledge_point_id == "K"
        assert entry.total_count == 10
        assert entry.correct_count == 6
        assert entry.ratio == 0.6

    def test_empty_input(self):
        assert aggregate_mastery([]) == []
        assert subject_rollup("math", []).ratio == 0.0

    def test_full_coverage_adds_unpracticed_points(self):
        kps = [
            KnowledgePoint("a", "math", "4", "Alpha"),
            KnowledgePoint("b", "math", "4", "Beta"),
        ]
        entries = aggregate_mastery([_make("a", True)], kps, full_coverage=True)
        assert [e.knowledge_point_id for e in entries] == ["a", "b"]
        assert entries[1].title == "Beta"
        assert entries[1].total_count == 0
        assert entries[1].ratio == 0.0
        assert entries[0].title == "Alpha"

    def test_unknown_title_falls_back_to_id(self):
        [entry] = aggregate_mastery([_make("x", False)])
        assert entry.title == "x"

    def test_tracks_last_attempt(self):
        attempts = [
            _make("a", True, created_at="2026-03-02T10:00:00+00:00"),
            _make("a", True, created_at="2026-03-05T10:00:00+00:00"),
            _make("a", False, created_at="2026-03-03T10:00:00+00:00"),
        ]
        [entry] = aggregate_mastery(attempts)
        assert entry.last_attempt_at == "2026-03-05T10:00:00+00:00"

    def test_counts_and_ratios_bounded(self):
        rng = random.Random(7)
        for _ in range(25):
            attempts = [
                _make(rng.choice("abcde"), rng.random() < 0.5, index=i)
                for i in range(rng.randint(0, 40))
            ]
            entries = aggregate_mastery(attempts)
            assert sum(e.correct_count for e in entries) <= sum(e.total_count for e in entries)
            assert sum(e.total_count for e in entries) == len(attempts)
            assert all(0.0 <= e.ratio <= 1.0 for e in entries)

    def test_order_independent(self):
        rng = random.Random(3)
        attempts = [_make(rng.choice("abc"), rng.random() < 0.5, index=i) for i in range(30)]
        shuffled = list(attempts)
        rng.shuffle(shuffled)
        assert aggregate_mastery(attempts) == aggregate_mastery(shuffled)


class TestSubjectRollup:
    def test_mean_over_practiced_points_only(self):
        entries = [_entry("a", 1, 2), _entry("b", 3, 3), _entry("c", 0, 0)]
        rollup = subject_rollup("math", entries)
        assert rollup.ratio == 0.75
        assert rollup.practiced_points == 2
        assert rollup.total_points == 3
        assert rollup.correct_count == 4
        assert rollup.total_count == 5


class TestFromLedger:
    def test_mastery_for_user_covers_subject(self, seeded):
        record_attempt(
            AttemptInput(
                user_id="u1",
                question_id="q-div-1",
                subject="math",
                knowledge_point_id="math-4-division",
                correct=True,
            )
        )
        entries = mastery_for_user("u1", "math")
        assert len(entries) == 4
        by_id = {e.knowledge_point_id: e for e in entries}
        assert by_id["math-4-division"].ratio == 1.0
        assert by_id["math-4-area"].total_count == 0
        assert subject_mastery("u1", "math").practiced_points == 1

    def test_cohort_view(self, seeded):
        for user_id, correct in (("u1", True), ("u2", False)):
            record_attempt(
                AttemptInput(
                    user_id=user_id,
                    question_id="q-area-1",
                    subject="math",
                    knowledge_point_id="math-4-area",
                    correct=correct,
                )
            )
        [entry] = mastery_for_users(["u1", "u2"], "math")
        assert entry.total_count == 2
        assert entry.ratio == 0.5


class TestRanking:
    def test_lowest_ratio_first(self):
        entries = [_entry("a", 9, 10), _entry("b", 1, 10), _entry("c", 5, 10)]
        assert [e.knowledge_point_id for e in rank_weak_points(entries)] == ["b", "c", "a"]

    def test_ties_prefer_fewer_attempts_then_title(self):
        entries = [
            _entry("z", 0, 4, title="Zeta"),
            _entry("y", 0, 0, title="Beta"),
            _entry("x", 0, 0, title="Alpha"),
        ]
        assert [e.knowledge_point_id for e in rank_weak_points(entries)] == ["x", "y", "z"]

    def test_deterministic_under_reordering(self):
        rng = random.Random(11)
        entries = [_entry(f"kp{i}", rng.randint(0, 3), 3) for i in range(12)]
        first = rank_weak_points(entries)
        shuffled = list(entries)
        rng.shuffle(shuffled)
        assert rank_weak_points(entries) == first
        assert rank_weak_points(shuffled) == first

    def test_limit(self):
        entries = [_entry(str(i), i, 10) for i in range(6)]
        assert len(rank_weak_points(entries, 3)) == 3
        assert rank_weak_points(entries, 0) == []
        assert rank_weak_points([], 3) == []

    def test_weak_points_for_new_user(self, seeded):
        titles = [e.title for e in weak_points("new-user", "math")]
        assert titles == [
            "Area and perimeter of rectangles",
            "Division with remainders",
            "Equivalent fractions",
        ]
