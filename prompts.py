"""
Prompt templates for the furniture advisor.
Used only server-side; never sent back to the client.
"""
from __future__ import annotations

from typing import Any, Optional

# ── Item analysis ─────────────────────────────────────────────────────────────

ANALYSIS_SYSTEM_PROMPT = """You are an expert secondhand furniture advisor. \
Analyze furniture photos, price, and notes to provide a comprehensive assessment. \
Generate reasoning for all insights, and if any insights have Low or Medium confidence, \
generate questions to help improve confidence. \
Return valid JSON only, no markdown or explanation."""

_ANALYSIS_SCHEMA = """{
  "title": "Brief descriptive title (e.g., 'Late Victorian Dresser')",
  "recommendation": {
    "headline": "Main recommendation (e.g., 'Purchase this!' or 'Worth a closer look' or 'Pass')",
    "subhead": "One sentence explanation",
    "confidence": "High" | "Medium" | "Low",
    "chips": ["Save $X-Y", "Condition note", "Restoration note"]
  },
  "insights": [
    {
      "label": "Age",
      "value": "Estimated age range (e.g., '1890s - 1920s')",
      "confidence": "High" | "Medium" | "Low",
      "reasoning": "REQUIRED: 3-4 sentence explanation of how you arrived at this assessment"
    },
    {
      "label": "Materials",
      "value": "Material description (e.g., 'Solid oak hardwood')",
      "confidence": "High" | "Medium" | "Low",
      "reasoning": "REQUIRED: 3-4 sentence explanation of how you arrived at this assessment"
    },
    {
      "label": "Condition",
      "value": "Condition assessment (e.g., 'Excellent' or 'Good' or 'Fair')",
      "confidence": "High" | "Medium" | "Low",
      "reasoning": "REQUIRED: 3-4 sentence explanation of how you arrived at this assessment"
    },
    {
      "label": "Restoration effort",
      "value": "Restoration estimate (e.g., 'Minimal - ~1 hour' or 'Light - ~2 hours')",
      "confidence": "High" | "Medium" | "Low",
      "reasoning": "REQUIRED: 3-4 sentence explanation of how you arrived at this assessment"
    }
  ],
  "fairValueRange": [min, max],
  "estSavingsRange": [min, max],
  "questions": [ONLY include this field if ANY insight has Low or Medium confidence. \
Generate exactly 2 questions that would help improve confidence. \
Prioritize questions that help MULTIPLE insights simultaneously. \
Each question object must have: "id" (e.g., "q1", "q2"), "text" (one short sentence), \
"answerType" ("photo" | "text"), "helpsInsights" (array of insight labels this question helps, \
e.g., ["Age", "Materials"])],
  "savingsReasoning": "ONLY include this field if recommendation confidence is Low or Medium. \
Provide a 3-4 sentence explanation of how you calculated the savings estimate."
}"""

_ANALYSIS_RULES = """IMPORTANT REQUIREMENTS:
1. Provide reasoning for ALL insights (required, not optional)
2. If ANY insight has Low or Medium confidence, include a "questions" array with exactly 2 questions
3. If recommendation confidence is Low or Medium, include "savingsReasoning"
4. Questions should prioritize helping multiple insights simultaneously
5. Questions must reference details from the photos, price, or notes provided

Base your assessment on what you can see in the photos, the asking price, and any notes provided."""


def format_price(price: str) -> Optional[str]:
    """'150' → '$150'. Returns None for a blank price."""
    price = (price or "").strip()
    if not price:
        return None
    return price if price.startswith("$") else f"${price}"


def build_analysis_user_prompt(photo_count: int, price: str, notes: str) -> str:
    price_str = format_price(price) or "Not provided"
    notes_str = (notes or "").strip() or "None"
    return (
        f"Below are {photo_count} photo(s) of the item. "
        f"Analyze them along with the price and notes below.\n\n"
        f"Analyze this secondhand furniture item based on:\n"
        f"- {photo_count} photo(s) provided\n"
        f"- Asking price: {price_str}\n"
        f"- Additional notes: {notes_str}\n\n"
        f"Return a JSON object with this exact structure:\n"
        f"{_ANALYSIS_SCHEMA}\n\n"
        f"{_ANALYSIS_RULES}"
    )


# ── Follow-up questions ───────────────────────────────────────────────────────

QUESTIONS_SYSTEM_PROMPT = """You are an expert secondhand furniture advisor. \
Given multiple insights that need confidence improvement and full context about the item \
(photos, price, notes, and overall analysis), generate exactly 2 short questions that would be \
most beneficial and move the needle in confidence levels. \
Prioritize questions that help multiple insights simultaneously. \
Each question should be answerable by either a photo or a short text answer. \
Questions must be highly relevant to the specific item being analyzed, referencing details \
from the photos, price, or notes provided. \
Return valid JSON only, no markdown or explanation."""

_QUESTIONS_FORMAT = """Return a JSON array of exactly 2 objects. Each object must have:
- "id": short unique id (e.g. "q1", "q2")
- "text": the question text (one short sentence, specific to this item)
- "answerType": "photo" | "text" (use "photo" if a photo would best answer it, \
e.g. "Can you see the maker's mark?"; use "text" for things like style or provenance)
- "helpsInsights": array of insight labels that this question helps (e.g. ["Age", "Materials"])

Example format: [{"id":"q1","text":"Can you see a maker's mark or label?","answerType":"photo",\
"helpsInsights":["Age","Materials"]},{"id":"q2","text":"What style period does it match?",\
"answerType":"text","helpsInsights":["Age"]}]"""


def _summarise_analysis(overall_analysis: Optional[dict[str, Any]]) -> str:
    if not isinstance(overall_analysis, dict) or not overall_analysis:
        return ""
    recommendation = overall_analysis.get("recommendation")
    headline = recommendation.get("headline") if isinstance(recommendation, dict) else None
    insights = overall_analysis.get("insights")
    parts = [
        f"{i.get('label')}: {i.get('value')} ({i.get('confidence')})"
        for i in insights or []
        if isinstance(i, dict)
    ] if isinstance(insights, list) else []
    return (
        "\nOverall analysis summary:\n"
        f"- Recommendation: {headline or 'N/A'}\n"
        f"- All insights: {', '.join(parts) or 'N/A'}\n"
    )


def build_questions_user_prompt(
    insights_needing_help: list[dict[str, Any]],
    photo_count: int,
    price: str,
    notes: str,
    overall_analysis: Optional[dict[str, Any]] = None,
) -> str:
    price_str = format_price(price)
    price_info = f"Asking price: {price_str}" if price_str else "No price provided"
    notes_info = f"Notes: {notes}" if (notes or "").strip() else "No notes provided"
    insights_list = "\n".join(
        f'- {i.get("label")}: "{i.get("value", "")}" ({i.get("confidence")} confidence)'
        for i in insights_needing_help
    )
    return (
        f"Insights that need confidence improvement:\n"
        f"{insights_list}\n\n"
        f"Context about this specific item:\n"
        f"- Number of photos provided: {photo_count}\n"
        f"- {price_info}\n"
        f"- {notes_info}\n"
        f"{_summarise_analysis(overall_analysis)}\n"
        f"Generate exactly 2 questions that would be most beneficial and move the needle in "
        f"confidence levels. Prioritize questions that help MULTIPLE insights simultaneously "
        f"(e.g., a question about maker's marks could help both Age and Materials insights). "
        f"Questions must reference details from the photos, price, or notes provided.\n\n"
        f"{_QUESTIONS_FORMAT}"
    )


# ── Reasoning ─────────────────────────────────────────────────────────────────

REASONING_SYSTEM_PROMPT = """You are an expert secondhand furniture advisor. \
Write a clear, helpful 3-4 sentence paragraph explaining how we arrived at an assessment. \
Use plain language. Do not use markdown or bullet points."""


def build_reasoning_user_prompt(label: str, value: str, confidence: str) -> str:
    return (
        f'Assessment: {label} = "{value}". Confidence: {confidence}.\n\n'
        f"Write 3-4 sentences explaining how we landed on this answer "
        f"(what we looked at, what we inferred, and any caveats)."
    )
