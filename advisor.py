"""
Furniture advisor: the only code that talks to OpenAI.

Pricing (as of early 2025):
  gpt-4o-mini:  $0.15 / 1M input tokens,  $0.60 / 1M output tokens
  gpt-4o:       $2.50 / 1M input tokens,  $10.00 / 1M output tokens
  Image parts are billed as input tokens, so they show up in usage.prompt_tokens.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI

import config
from assessment import (
    AnalysisResult,
    InvalidResponseError,
    Question,
    coerce_analysis,
    coerce_questions,
    parse_json_response,
)
from prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    QUESTIONS_SYSTEM_PROMPT,
    REASONING_SYSTEM_PROMPT,
    build_analysis_user_prompt,
    build_questions_user_prompt,
    build_reasoning_user_prompt,
)

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE  = 0.5
QUESTIONS_TEMPERATURE = 0.5
REASONING_TEMPERATURE = 0.4

# Pricing per 1k tokens
_PRICING = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o":      (0.0025,  0.01),
}


class AdvisorError(Exception):
    """A model call failed in a way the client should see as a 5xx."""
    status = 502


class EmptyResponseError(AdvisorError):
    def __init__(self) -> None:
        super().__init__("No response from model")


class MalformedResponseError(AdvisorError):
    pass


@dataclass
class CallStats:
    """Bookkeeping for one chat completion."""
    operation: str
    model_id: str
    latency_ms: int
    input_tokens: int
    output_tokens: int
    cost_usd: float

    @property
    def cost_str(self) -> str:
        if self.cost_usd < 0.001:
            return f"${self.cost_usd * 1000:.3f}m"   # show in milli-dollars
        return f"${self.cost_usd:.4f}"


class FurnitureAdvisor:

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.model_id = model
        self._client = AsyncOpenAI(api_key=api_key)
        self.cost_per_1k_input_tokens, self.cost_per_1k_output_tokens = _PRICING.get(
            model, _PRICING["gpt-4o-mini"]
        )

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens / 1000 * self.cost_per_1k_input_tokens
            + output_tokens / 1000 * self.cost_per_1k_output_tokens
        )

    async def _complete(
        self,
        operation: str,
        messages: list[dict],
        temperature: float,
        json_mode: bool = False,
    ) -> str:
        """
        Run one chat completion and return the stripped reply text.
        Raises EmptyResponseError when the model returns nothing.
        openai.APIError propagates unchanged.
        """
        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        response = await self._client.chat.completions.create(
            model=self.model_id,
            messages=messages,
            temperature=temperature,
            **kwargs,
        )
        latency_ms = int((time.monotonic() - t0) * 1000)

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        stats = CallStats(
            operation=operation,
            model_id=self.model_id,
            latency_ms=latency_ms,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=self.estimate_cost(input_tokens, output_tokens),
        )
        if config.SHOW_COST_INFO:
            logger.info(
                "[%s] %s OK — tokens=%d/%d cost=%s latency=%dms",
                stats.model_id, stats.operation, stats.input_tokens,
                stats.output_tokens, stats.cost_str, stats.latency_ms,
            )

        content = response.choices[0].message.content if response.choices else None
        content = (content or "").strip()
        if not content:
            raise EmptyResponseError()
        return content

    # ── Operations ────────────────────────────────────────────────────────────

    async def analyse_item(self, photos: list[str], price: str, notes: str) -> AnalysisResult:
        """Assess an item from up to config.MAX_PHOTOS data-URL photos."""
        photos_to_send = photos[: config.MAX_PHOTOS]
        if len(photos) > len(photos_to_send):
            logger.info("Dropping %d photo(s) over the limit of %d",
                        len(photos) - len(photos_to_send), config.MAX_PHOTOS)

        user_content: list[dict] = [
            {
                "type": "text",
                "text": build_analysis_user_prompt(len(photos_to_send), price, notes),
            },
        ]
        user_content.extend(
            {"type": "image_url", "image_url": {"url": url}} for url in photos_to_send
        )

        raw = await self._complete(
            "analyze-item",
            [
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
            temperature=ANALYSIS_TEMPERATURE,
            json_mode=True,
        )
        try:
            result = coerce_analysis(
                parse_json_response(raw, self.model_id),
                max_questions=config.MAX_QUESTIONS,
            )
        except InvalidResponseError as exc:
            raise MalformedResponseError(str(exc)) from exc

        if result.needs_questions and not result.questions:
            logger.warning("[%s] Insights below High but no follow-up questions returned",
                           self.model_id)
        return result

    async def generate_questions(
        self,
        insights_needing_help: list[dict],
        photos: list[str],
        price: str,
        notes: str,
        overall_analysis: Optional[dict] = None,
    ) -> list[Question]:
        """Ask for follow-up questions. Only the photo count is sent, not the images."""
        if not insights_needing_help:
            return []

        raw = await self._complete(
            "generate-questions",
            [
                {"role": "system", "content": QUESTIONS_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_questions_user_prompt(
                        insights_needing_help, len(photos), price, notes, overall_analysis,
                    ),
                },
            ],
            temperature=QUESTIONS_TEMPERATURE,
        )
        try:
            return coerce_questions(
                parse_json_response(raw, self.model_id),
                max_questions=config.MAX_QUESTIONS,
            )
        except InvalidResponseError as exc:
            raise MalformedResponseError(str(exc)) from exc

    async def generate_reasoning(self, label: str, value: str, confidence: str) -> str:
        return await self._complete(
            "generate-reasoning",
            [
                {"role": "system", "content": REASONING_SYSTEM_PROMPT},
                {"role": "user", "content": build_reasoning_user_prompt(label, value, confidence)},
            ],
            temperature=REASONING_TEMPERATURE,
        )
