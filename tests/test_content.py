"""Tests for content.py: YAML loading, seeding, lookups."""

from __future__ import annotations

import pytest

from k12_study.content import (
    get_knowledge_point,
    get_knowledge_points,
    get_question,
    get_questions,
    get_subjects,
    load_content,
    seed_content,
)


class TestLoadContent:
    def test_bundled_file(self):
        knowledge_points, questions = load_content()
        assert len(knowledge_points) == 5
        assert len(questions) == 12
        assert len({q.id for q in questions}) == len(questions)

    def test_questions_inherit_subject_and_grade(self, tmp_path):
        path = tmp_path / "content.yaml"
        path.write_text(
            "knowledge_points:\n"
            "  - {id: kp1, subject: math, grade: '5', title: Decimals}\n"
            "questions:\n"
            "  - {id: q1, knowledge_point_id: kp1, stem: '0.1 + 0.2?', answer: '0.3'}\n",
            encoding="utf-8",
        )
        _, [question] = load_content(path)
        assert question.subject == "math"
        assert question.grade == "5"
        assert question.options == []
        assert question.active is True

    def test_unknown_knowledge_point(self, tmp_path):
        path = tmp_path / "content.yaml"
        path.write_text(
            "questions:\n  - {id: q1, knowledge_point_id: nope, stem: s, answer: a}\n",
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="nope"):
            load_content(path)


class TestSeed:
    def test_seed_and_lookup(self):
        assert seed_content() == (5, 12)
        assert get_subjects() == ["english", "math"]
        assert get_knowledge_point("math-4-area").chapter == "3 Geometry"
        question = get_question("q-area-1")
        assert question.options[2] == "24 cm²"
        assert len(get_questions("math", "4")) == 10
        assert [kp.id for kp in get_knowledge_points("english")] == ["english-4-tenses"]

    def test_seed_is_idempotent(self):
        seed_content()
        seed_content()
        assert len(get_questions()) == 12
