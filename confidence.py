"""
Confidence recalculation from answered follow-up questions.

Purely local: answers never go back to the model. Photo answers are worth
2 points, text answers 1 point, and the total promotes a tier along a fixed
ladder.
"""
from __future__ import annotations

from typing import Iterable

from assessment import HIGH, LOW, MEDIUM, QuestionAnswer, normalize_confidence

PHOTO_POINTS = 2
TEXT_POINTS  = 1

# current tier → [(min points, new tier)], highest threshold first
PROMOTION_LADDER: dict[str, list[tuple[int, str]]] = {
    LOW:    [(5, HIGH), (2, MEDIUM)],
    MEDIUM: [(3, HIGH)],
    HIGH:   [],
}


def answer_points(answers: Iterable[QuestionAnswer]) -> int:
    """An answer carrying both a photo and text scores for both."""
    points = 0
    for a in answers:
        if not a.answered:
            continue
        if a.answer_photo:
            points += PHOTO_POINTS
        if a.answer_text:
            points += TEXT_POINTS
    return points


def recalculate_confidence(current: str, answers: list[QuestionAnswer]) -> str:
    """Return the tier `current` is promoted to by `answers`. High never drops."""
    current = normalize_confidence(current)
    if not answers:
        return current

    points = answer_points(answers)
    for threshold, promoted in PROMOTION_LADDER[current]:
        if points >= threshold:
            return promoted
    return current


def recalculate_all_insights(
    insights: list[dict],
    answers: list[QuestionAnswer],
) -> dict[str, str]:
    """
    Map insight label → recalculated tier.
    Only insights with at least one relevant answer appear in the result.
    """
    updates: dict[str, str] = {}
    for insight in insights:
        label = insight.get("label")
        relevant = [a for a in answers if a.helps(label)]
        if relevant:
            updates[label] = recalculate_confidence(insight.get("confidence"), relevant)
    return updates
