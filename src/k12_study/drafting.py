"""AI-backed content drafting: question explanations and new practice questions.

Drafting is optional. Every entry point returns ``None`` when no API key is
configured, under pytest, or when the model call or its JSON fails to parse.
Mastery, ranking and plan generation never depend on it.
"""

from __future__ import annotations

import json
import os
from typing import Any

import markdown
from loguru import logger

from .models import Question

DRAFT_MODEL = os.environ.get("K12_STUDY_DRAFT_MODEL", "gpt-4o-mini")
DRAFT_TEMPERATURE = 0.4

EXPLANATION_SYSTEM = (
    "You are a patient K12 teacher. Explain how to solve the question step by step "
    "in short markdown. Return ONLY a JSON object, no extra text."
)
QUESTION_SYSTEM = (
    "You write K12 practice questions with exactly one correct answer. "
    "Return ONLY a JSON object, no extra text."
)


def ai_available() -> bool:
    """Drafting runs only with an API key and never inside a test run."""
    return "PYTEST_CURRENT_TEST" not in os.environ and bool(os.environ.get("OPENAI_API_KEY"))


def _get_client() -> Any:
    # imported on first draft so the engine starts without touching openai
    try:
        from openai import OpenAI

        client = OpenAI()
    except Exception as exc:
        logger.warning("Drafting disabled, no OpenAI client: {}", exc)
        return None
    return client


def render_markdown(text: str) -> str:
    return markdown.markdown(text, extensions=["fenced_code", "tables"], output_format="html")


def parse_json_reply(content: str) -> dict[str, Any] | None:
    """Parse a model reply that should hold one JSON object, tolerating code fences."""
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _complete(system: str, prompt: str) -> dict[str, Any] | None:
    if not ai_available():
        return None
    client = _get_client()
    if client is None:
        return None
    try:
        response = client.chat.completions.create(
            model=DRAFT_MODEL,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=DRAFT_TEMPERATURE,
            max_tokens=1200,
        )
    except Exception as exc:
        logger.warning("Drafting call failed: {}", exc)
        return None
    reply = parse_json_reply(response.choices[0].message.content or "")
    if reply is None:
        logger.warning("Drafting reply was not a JSON object")
    return reply


def draft_explanation(question: Question, knowledge_point_title: str | None = None) -> dict[str, Any] | None:
    """Draft a worked explanation for ``question``.

    Returns ``{"analysis", "steps", "hints", "html"}`` or None.
    """
    topic = knowledge_point_title or question.knowledge_point_id
    prompt = (
        f"Subject: {question.subject}, grade {question.grade}, topic: {topic}.\n"
        f"Question: {question.stem}\n"
        f"Options: {question.options}\n"
        f"Correct answer: {question.answer}\n\n"
        'Return {"analysis": string, "steps": [string], "hints": [string]}.'
    )
    reply = _complete(EXPLANATION_SYSTEM, prompt)
    if not reply or not reply.get("analysis"):
        return None
    steps = [str(step) for step in reply.get("steps") or []]
    hints = [str(hint) for hint in reply.get("hints") or []]
    body = str(reply["analysis"])
    if steps:
        body += "\n\n" + "\n".join(f"{index}. {step}" for index, step in enumerate(steps, start=1))
    return {
        "analysis": str(reply["analysis"]),
        "steps": steps,
        "hints": hints,
        "html": render_markdown(body),
    }


def draft_question(subject: str, grade: str, topic: str) -> dict[str, Any] | None:
    """Draft one multiple-choice question; None unless stem, options and answer all came back."""
    prompt = (
        f"Write one {subject} multiple-choice question for grade {grade} on '{topic}'.\n"
        'Return {"stem": string, "options": [4 strings], "answer": one of the options, '
        '"explanation": string}.'
    )
    reply = _complete(QUESTION_SYSTEM, prompt)
    if not reply:
        return None
    stem = str(reply.get("stem") or "").strip()
    options = [str(option) for option in reply.get("options") or []]
    answer = str(reply.get("answer") or "").strip()
    if not stem or len(options) < 2 or answer not in options:
        logger.warning("Rejected drafted question for {} / {}", subject, topic)
        return None
    return {
        "subject": subject,
        "grade": grade,
        "stem": stem,
        "options": options,
        "answer": answer,
        "explanation": str(reply.get("explanation") or ""),
    }


__all__ = [
    "DRAFT_MODEL",
    "ai_available",
    "draft_explanation",
    "draft_question",
    "parse_json_reply",
    "render_markdown",
]
