"""
Shared types for a furniture assessment, plus the JSON parsing and shape
coercion applied to every model reply.

Python attributes are snake_case; to_dict()/from_dict() speak the camelCase
JSON the browser client uses.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Opening ```json / ``` and closing ```, whether or not they sit on their own line
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# ── Confidence tiers ──────────────────────────────────────────────────────────

LOW    = "Low"
MEDIUM = "Medium"
HIGH   = "High"

# Ordinal: index = rank
CONFIDENCE_LEVELS = (LOW, MEDIUM, HIGH)

ANSWER_TYPES = ("photo", "text")

REASONING_PLACEHOLDER = "Reasoning not available"


def normalize_confidence(value: Any, default: str = MEDIUM) -> str:
    """'high' / ' HIGH ' → 'High'. Anything unrecognised → default."""
    if isinstance(value, str):
        wanted = value.strip().lower()
        for level in CONFIDENCE_LEVELS:
            if level.lower() == wanted:
                return level
    return default


class InvalidResponseError(ValueError):
    """The model replied, but not in the shape we asked for."""


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass
class Recommendation:
    headline: str
    subhead: str
    confidence: str              # High | Medium | Low
    chips: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "headline": self.headline,
            "subhead": self.subhead,
            "confidence": self.confidence,
            "chips": list(self.chips),
        }


@dataclass
class Insight:
    label: str                   # Age | Materials | Condition | Restoration effort
    value: str
    confidence: str
    reasoning: str = REASONING_PLACEHOLDER

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "value": self.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass
class Question:
    id: str
    text: str
    answer_type: str             # photo | text
    helps_insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "answerType": self.answer_type,
            "helpsInsights": list(self.helps_insights),
        }


@dataclass
class AnalysisResult:
    """One analyze call's worth of assessment. Never persisted server-side."""
    title: str
    recommendation: Recommendation
    insights: list[Insight]
    fair_value_range: tuple[float, float] = (0, 0)
    est_savings_range: tuple[float, float] = (0, 0)
    questions: Optional[list[Question]] = None
    savings_reasoning: Optional[str] = None

    @property
    def needs_questions(self) -> bool:
        """True when any insight is below High confidence."""
        return any(i.confidence != HIGH for i in self.insights)

    def to_dict(self) -> dict:
        data = {
            "title": self.title,
            "recommendation": self.recommendation.to_dict(),
            "insights": [i.to_dict() for i in self.insights],
            "fairValueRange": list(self.fair_value_range),
            "estSavingsRange": list(self.est_savings_range),
        }
        if self.questions is not None:
            data["questions"] = [q.to_dict() for q in self.questions]
        if self.savings_reasoning:
            data["savingsReasoning"] = self.savings_reasoning
        return data


@dataclass
class QuestionAnswer:
    """A shopper's answer to a follow-up question. Client-held; never sent to the model."""
    question_id: str
    answer_type: str
    answered: bool = False
    helps_insights: list[str] = field(default_factory=list)
    insight_label: Optional[str] = None      # older clients send a single label
    answer_photo: Optional[str] = None       # data URL
    answer_text: Optional[str] = None

    def helps(self, label: str) -> bool:
        return label in self.helps_insights or self.insight_label == label

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionAnswer":
        if not isinstance(data, dict):
            raise ValueError("answer must be an object")
        helps = data.get("helpsInsights")
        return cls(
            question_id=str(data.get("questionId", "")),
            answer_type=str(data.get("answerType", "text")),
            answered=data.get("answered") is True,    # "false" / 1 do not count
            helps_insights=[str(h) for h in helps] if isinstance(helps, list) else [],
            insight_label=data.get("insightLabel") or None,
            answer_photo=data.get("answerPhoto") or None,
            answer_text=data.get("answerText") or None,
        )


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_json_response(raw: str, source: str) -> Any:
    """
    Parse JSON from a model response, handling markdown fences gracefully.
    Raises InvalidResponseError on parse failure.
    """
    text = _FENCE_RE.sub("", raw.strip()).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("[%s] Non-JSON response: %s", source, raw[:300])
        raise InvalidResponseError(f"[{source}] JSON parse error: {exc}") from exc


def _str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _coerce_range(value: Any) -> tuple[float, float]:
    if (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
    ):
        return value[0], value[1]
    return 0, 0


def _coerce_recommendation(data: dict) -> Recommendation:
    chips = data.get("chips")
    return Recommendation(
        headline=_str(data.get("headline")),
        subhead=_str(data.get("subhead")),
        confidence=normalize_confidence(data.get("confidence")),
        chips=[_str(c) for c in chips] if isinstance(chips, list) else [],
    )


def _coerce_insight(data: dict) -> Insight:
    return Insight(
        label=_str(data.get("label")),
        value=_str(data.get("value")),
        confidence=normalize_confidence(data.get("confidence")),
        reasoning=_str(data.get("reasoning")) or REASONING_PLACEHOLDER,
    )


def _is_complete_question(data: Any) -> bool:
    return (
        isinstance(data, dict)
        and bool(data.get("id"))
        and bool(data.get("text"))
        and bool(data.get("answerType"))
        and isinstance(data.get("helpsInsights"), list)
    )


def _question_from_dict(data: dict) -> Question:
    helps = data.get("helpsInsights")
    answer_type = _str(data.get("answerType")).strip().lower()
    return Question(
        id=_str(data.get("id")),
        text=_str(data.get("text")),
        answer_type=answer_type if answer_type in ANSWER_TYPES else "text",
        helps_insights=[_str(h) for h in helps] if isinstance(helps, list) else [],
    )


def coerce_analysis(data: Any, max_questions: int = 2) -> AnalysisResult:
    """
    Validate a parsed analysis reply and fill defaults for missing optional fields.

    Raises InvalidResponseError when the required skeleton (a recommendation
    object and an insights list) is missing. Keys outside the AnalysisResult
    schema are dropped.
    """
    if not isinstance(data, dict):
        raise InvalidResponseError("Invalid response format")
    recommendation = data.get("recommendation")
    insights = data.get("insights")
    if not isinstance(recommendation, dict) or not isinstance(insights, list):
        raise InvalidResponseError("Invalid response format")

    questions = None
    raw_questions = data.get("questions")
    if isinstance(raw_questions, list):
        questions = [
            _question_from_dict(q) for q in raw_questions if _is_complete_question(q)
        ][:max_questions]

    return AnalysisResult(
        title=_str(data.get("title")),
        recommendation=_coerce_recommendation(recommendation),
        insights=[_coerce_insight(i) for i in insights if isinstance(i, dict)],
        fair_value_range=_coerce_range(data.get("fairValueRange")),
        est_savings_range=_coerce_range(data.get("estSavingsRange")),
        questions=questions,
        savings_reasoning=_str(data.get("savingsReasoning")) or None,
    )


def coerce_questions(data: Any, max_questions: int = 2) -> list[Question]:
    """
    Validate a parsed follow-up questions reply (a JSON array).
    Non-object entries are dropped, missing id/text become "" and missing
    helpsInsights becomes []; the list is cut to max_questions.
    """
    if not isinstance(data, list):
        raise InvalidResponseError("Invalid response format")
    return [_question_from_dict(q) for q in data if isinstance(q, dict)][:max_questions]
