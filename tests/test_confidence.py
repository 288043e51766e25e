"""
Tests for confidence.py: the answered-question promotion ladder.

Covers:
  - point scoring: photo = 2, text = 1, unanswered = 0
  - Low → Medium at 2 points, Low → High at 5 points
  - Medium → High at 3 points
  - High never moves
  - recalculate_all_insights(): only insights with relevant answers are updated
"""
from __future__ import annotations

import pytest

from assessment import QuestionAnswer
from confidence import answer_points, recalculate_all_insights, recalculate_confidence


def text_answer(qid: str = "q1", helps=("Age",), **kwargs) -> QuestionAnswer:
    defaults = dict(
        question_id=qid,
        answer_type="text",
        answered=True,
        helps_insights=list(helps),
        answer_text="Looks like dovetail joints",
    )
    defaults.update(kwargs)
    return QuestionAnswer(**defaults)


def photo_answer(qid: str = "q1", helps=("Age",), **kwargs) -> QuestionAnswer:
    defaults = dict(
        question_id=qid,
        answer_type="photo",
        answered=True,
        helps_insights=list(helps),
        answer_photo="data:image/jpeg;base64,AAAA",
    )
    defaults.update(kwargs)
    return QuestionAnswer(**defaults)


# ── answer_points ─────────────────────────────────────────────────────────────

class TestAnswerPoints:
    def test_photo_worth_two(self):
        assert answer_points([photo_answer()]) == 2

    def test_text_worth_one(self):
        assert answer_points([text_answer()]) == 1

    def test_unanswered_worth_nothing(self):
        assert answer_points([text_answer(answered=False), photo_answer(answered=False)]) == 0

    def test_answer_with_photo_and_text_counts_both(self):
        both = photo_answer(answer_text="Oak, I think")
        assert answer_points([both]) == 3

    def test_answered_flag_without_payload_scores_zero(self):
        assert answer_points([text_answer(answer_text=None)]) == 0

    def test_string_false_from_client_scores_zero(self):
        answer = QuestionAnswer.from_dict({
            "questionId": "q1", "answerType": "photo", "answered": "false",
            "helpsInsights": ["Age"], "answerPhoto": "data:image/jpeg;base64,AAAA",
        })
        assert answer_points([answer]) == 0
        assert recalculate_confidence("Low", [answer]) == "Low"


# ── recalculate_confidence ────────────────────────────────────────────────────

class TestRecalculateConfidence:
    @pytest.mark.parametrize("tier", ["Low", "Medium", "High"])
    def test_no_answers_keeps_current(self, tier):
        assert recalculate_confidence(tier, []) == tier

    def test_low_one_point_stays_low(self):
        assert recalculate_confidence("Low", [text_answer()]) == "Low"

    def test_low_two_points_becomes_medium(self):
        assert recalculate_confidence("Low", [photo_answer()]) == "Medium"

    def test_low_three_text_answers_becomes_medium(self):
        answers = [text_answer("q1"), text_answer("q2"), text_answer("q3")]
        assert recalculate_confidence("Low", answers) == "Medium"

    def test_low_four_points_still_medium(self):
        assert recalculate_confidence("Low", [photo_answer("q1"), photo_answer("q2")]) == "Medium"

    def test_low_five_points_becomes_high(self):
        answers = [photo_answer("q1"), photo_answer("q2"), text_answer("q3")]
        assert recalculate_confidence("Low", answers) == "High"

    def test_medium_one_photo_stays_medium(self):
        # 2 points is below the Medium → High threshold of 3
        assert recalculate_confidence("Medium", [photo_answer()]) == "Medium"

    def test_medium_three_points_becomes_high(self):
        answers = [photo_answer("q1"), text_answer("q2")]
        assert recalculate_confidence("Medium", answers) == "High"

    def test_high_stays_high(self):
        assert recalculate_confidence("High", [text_answer()]) == "High"

    def test_unanswered_answers_do_not_promote(self):
        answers = [photo_answer("q1", answered=False), photo_answer("q2", answered=False)]
        assert recalculate_confidence("Low", answers) == "Low"

    def test_lowercase_tier_is_normalised(self):
        assert recalculate_confidence("low", [photo_answer()]) == "Medium"


# ── recalculate_all_insights ──────────────────────────────────────────────────

class TestRecalculateAllInsights:
    INSIGHTS = [
        {"label": "Age", "confidence": "Low"},
        {"label": "Materials", "confidence": "Medium"},
        {"label": "Condition", "confidence": "High"},
        {"label": "Restoration effort", "confidence": "Medium"},
    ]

    def test_only_insights_with_relevant_answers_updated(self):
        answers = [photo_answer("q1", helps=("Age", "Materials"))]
        updates = recalculate_all_insights(self.INSIGHTS, answers)
        assert updates == {"Age": "Medium", "Materials": "Medium"}

    def test_answers_pooled_per_insight(self):
        answers = [
            photo_answer("q1", helps=("Materials",)),
            text_answer("q2", helps=("Materials", "Age")),
        ]
        updates = recalculate_all_insights(self.INSIGHTS, answers)
        assert updates["Materials"] == "High"   # 3 points from Medium
        assert updates["Age"] == "Low"          # 1 point from Low

    def test_legacy_insight_label_is_relevant(self):
        answers = [photo_answer("q1", helps=(), insight_label="Restoration effort"),
                   text_answer("q2", helps=(), insight_label="Restoration effort")]
        updates = recalculate_all_insights(self.INSIGHTS, answers)
        assert updates == {"Restoration effort": "High"}

    def test_no_answers_no_updates(self):
        assert recalculate_all_insights(self.INSIGHTS, []) == {}
