"""Practice question generation for a student's weak topics.

Asks the LLM for one question per topic. Any failure (provider error or
an unusable reply) degrades to placeholder questions so the endpoint
always returns one entry per topic.
"""

from __future__ import annotations

from typing import Any

import structlog

from tutoring.llm.client import LLMClient, LLMError
from tutoring.prompts import get_prompt

logger = structlog.get_logger(__name__)

FALLBACK_TEMPLATE = "Practice question for {topic}: ..."


class QuestionGenerationError(Exception):
    """Questions cannot be generated for the given input."""

    pass


def fallback_questions(weak_topics: list[str]) -> list[dict[str, str]]:
    return [
        {"topic": topic, "question": FALLBACK_TEMPLATE.format(topic=topic)}
        for topic in weak_topics
    ]


def _normalize(parsed: Any) -> list[dict[str, str]]:
    """Accept a JSON array or an object with a 'questions' array."""
    if isinstance(parsed, dict):
        parsed = parsed.get("questions")
    if not isinstance(parsed, list):
        return []

    questions = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        if not question:
            continue
        questions.append({"topic": str(item.get("topic") or "").strip(), "question": question})
    return questions


def generate_questions(
    weak_topics: list[str], client: LLMClient | None
) -> list[dict[str, str]]:
    """Generate one practice question per weak topic.

    Args:
        weak_topics: Topics to practise
        client: LLM client (None falls back to placeholder questions)

    Returns:
        List of {topic, question} dicts

    Raises:
        QuestionGenerationError: If weak_topics is empty
    """
    topics = [t.strip() for t in weak_topics if t and t.strip()]
    if not topics:
        raise QuestionGenerationError("No weak topics found")

    if client is None:
        logger.warning("question_generation.fallback", reason="no LLM client")
        return fallback_questions(topics)

    try:
        parsed = client.simple_json(
            system_prompt=get_prompt("questions/system"),
            user_message=get_prompt("questions/user", topics=", ".join(topics)),
        )
    except LLMError as e:
        logger.error("question_generation.fallback", error=str(e))
        return fallback_questions(topics)

    questions = _normalize(parsed)
    if not questions:
        logger.warning("question_generation.fallback", reason="no usable questions in reply")
        return fallback_questions(topics)

    logger.info("question_generation.done", topics=len(topics), questions=len(questions))
    return questions
