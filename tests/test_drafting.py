"""Tests for drafting.py: offline behaviour and reply parsing."""

from __future__ import annotations

from k12_study.drafting import ai_available, draft_explanation, draft_question, parse_json_reply, render_markdown
from k12_study.models import Question


def test_ai_disabled_under_pytest(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    assert ai_available() is False


def test_drafts_are_none_offline():
    question = Question(
        id="q1", subject="math", grade="4", knowledge_point_id="kp1", stem="1 + 1?", answer="2"
    )
    assert draft_explanation(question) is None
    assert draft_question("math", "4", "addition") is None


def test_parse_json_reply_strips_fences():
    reply = '```json\n{"stem": "2 + 2?", "answer": "4"}\n```'
    assert parse_json_reply(reply) == {"stem": "2 + 2?", "answer": "4"}


def test_parse_json_reply_rejects_non_objects():
    assert parse_json_reply("[1, 2]") is None
    assert parse_json_reply("not json") is None


def test_render_markdown():
    assert "<strong>322</strong>" in render_markdown("Answer: **322**")
