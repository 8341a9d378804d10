"""Worksheet analysis module.

Responsibilities:
- Compare a student's worksheet with its answer key using the LLM
- Parse the reply as JSON, falling back to regex extraction on free text
- Fall back to a fixed sample result when the LLM cannot be reached

Output structure (to_dict, camelCase for the frontend):
- score (0-100), weakTopics, suggestions, questions[number, question, correct]
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from tutoring.llm.client import LLMClient, LLMError, Message, parse_json_content
from tutoring.prompts import get_prompt

logger = structlog.get_logger(__name__)

# =============================================================================
# TYPES
# =============================================================================

AnalysisSource = Literal["llm", "text_fallback", "fallback"]

# Texts longer than this are cut before they go into the prompt
MAX_PROMPT_CHARS = 12000

SCORE_PATTERN = re.compile(r"score\s*[:=]\s*(\d+)", re.IGNORECASE)
WEAK_TOPICS_PATTERN = re.compile(r"weak topics?\s*[:=]\s*([\w, ]+)", re.IGNORECASE)
SUGGESTIONS_PATTERN = re.compile(r"suggestions?\s*[:=]\s*([\w, ]+)", re.IGNORECASE)

MOCK_ANALYSIS: dict[str, Any] = {
    "score": 88,
    "weakTopics": ["Fractions", "Decimals"],
    "suggestions": ["Review fractions", "Practice decimal problems"],
    "questions": [
        {"number": 1, "question": "What is 1/2 + 1/4?", "correct": True},
        {"number": 2, "question": "Convert 0.75 to a fraction.", "correct": False},
        {"number": 3, "question": "Simplify 3/9.", "correct": True},
        {"number": 4, "question": "Add 2.5 and 1.3.", "correct": False},
    ],
}


@dataclass
class QuestionResult:
    """Correctness of one worksheet question."""

    number: int
    question: str
    correct: bool

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "question": self.question, "correct": self.correct}


@dataclass
class WorksheetAnalysis:
    """Result of analysing one worksheet."""

    score: int | None
    weak_topics: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    questions: list[QuestionResult] = field(default_factory=list)
    source: AnalysisSource = "llm"
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "weakTopics": list(self.weak_topics),
            "suggestions": list(self.suggestions),
            "questions": [q.to_dict() for q in self.questions],
        }


# =============================================================================
# NORMALIZATION
# =============================================================================


def _clamp_score(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return max(0, min(100, score))


def _to_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


def _to_questions(value: Any) -> list[QuestionResult]:
    if not isinstance(value, list):
        return []

    questions = []
    for i, item in enumerate(value, start=1):
        if not isinstance(item, dict) or not item.get("question"):
            continue
        try:
            number = int(item.get("number", i))
        except (TypeError, ValueError):
            number = i
        questions.append(
            QuestionResult(
                number=number,
                question=str(item["question"]).strip(),
                correct=bool(item.get("correct", False)),
            )
        )
    return questions


def analysis_from_dict(
    data: dict[str, Any], source: AnalysisSource = "llm", model: str | None = None
) -> WorksheetAnalysis:
    """Build an analysis from a loosely-shaped dict.

    Accepts weakTopics or weak_topics, comma-separated strings or lists,
    and drops malformed question entries.
    """
    weak_topics = data.get("weakTopics", data.get("weak_topics"))
    return WorksheetAnalysis(
        score=_clamp_score(data.get("score")),
        weak_topics=_to_str_list(weak_topics),
        suggestions=_to_str_list(data.get("suggestions")),
        questions=_to_questions(data.get("questions")),
        source=source,
        model=model,
    )


def parse_text_fallback(content: str) -> WorksheetAnalysis:
    """Extract score, weak topics and suggestions from a free-text reply.

    A reply with no score label scores 0.
    """
    score_match = SCORE_PATTERN.search(content)
    topics_match = WEAK_TOPICS_PATTERN.search(content)
    suggestions_match = SUGGESTIONS_PATTERN.search(content)

    return WorksheetAnalysis(
        score=_clamp_score(score_match.group(1)) if score_match else 0,
        weak_topics=_to_str_list(topics_match.group(1)) if topics_match else [],
        suggestions=_to_str_list(suggestions_match.group(1)) if suggestions_match else [],
        source="text_fallback",
    )


def mock_analysis() -> WorksheetAnalysis:
    """The fixed sample result used when the LLM is unavailable."""
    return analysis_from_dict(copy.deepcopy(MOCK_ANALYSIS), source="fallback")


def parse_analysis(content: str, model: str | None = None) -> WorksheetAnalysis:
    """Parse an LLM reply: JSON first, regex extraction otherwise."""
    parsed = parse_json_content(content)
    if isinstance(parsed, dict):
        return analysis_from_dict(parsed, source="llm", model=model)

    logger.warning("worksheet_analysis.text_fallback", content=content[:100])
    result = parse_text_fallback(content)
    result.model = model
    return result


# =============================================================================
# MAIN FUNCTION
# =============================================================================


def build_prompt(worksheet_text: str, answer_key_text: str | None) -> str:
    """User prompt for the analysis call."""
    worksheet_text = worksheet_text[:MAX_PROMPT_CHARS]
    if answer_key_text:
        return get_prompt(
            "analysis/user",
            worksheet_text=worksheet_text,
            answer_key_text=answer_key_text[:MAX_PROMPT_CHARS],
        )
    return get_prompt("analysis/user_no_key", worksheet_text=worksheet_text)


def analyze_worksheet(
    worksheet_text: str,
    answer_key_text: str | None,
    client: LLMClient | None,
    use_mock_on_failure: bool = True,
    max_tokens: int | None = None,
) -> WorksheetAnalysis:
    """Analyse a worksheet against its answer key.

    Args:
        worksheet_text: Text extracted from the student's worksheet
        answer_key_text: Text extracted from the answer key, or None
        client: LLM client (None when no provider is configured)
        use_mock_on_failure: Return the sample result instead of raising
            when the LLM call fails
        max_tokens: Override for the completion length

    Returns:
        WorksheetAnalysis

    Raises:
        LLMError: If the LLM call fails and use_mock_on_failure is False
    """
    if client is None:
        if not use_mock_on_failure:
            raise LLMError("No LLM client configured")
        logger.warning("worksheet_analysis.fallback", reason="no LLM client")
        return mock_analysis()

    try:
        response = client.chat(
            messages=_messages(worksheet_text, answer_key_text),
            max_tokens=max_tokens,
        )
    except LLMError as e:
        if not use_mock_on_failure:
            raise
        logger.error("worksheet_analysis.fallback", error=str(e))
        return mock_analysis()

    result = parse_analysis(response.content, model=response.model)
    logger.info(
        "worksheet_analysis.done",
        source=result.source,
        score=result.score,
        weak_topics=len(result.weak_topics),
        with_answer_key=bool(answer_key_text),
        tokens=response.total_tokens,
    )
    return result


def _messages(worksheet_text: str, answer_key_text: str | None) -> list[Message]:
    return [
        Message(role="system", content=get_prompt("analysis/system")),
        Message(role="user", content=build_prompt(worksheet_text, answer_key_text)),
    ]
