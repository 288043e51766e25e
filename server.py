"""
server.py: aiohttp web server for the SecondLook API.

Endpoints:
  POST /api/analyze-item            → AnalysisResult JSON (photos + price + notes)
  POST /api/generate-questions      → {"questions": [...]} follow-ups for weak insights
  POST /api/generate-reasoning      → {"reasoning": "..."} for a single assessment
  POST /api/recalculate-confidence  → {"updates": {label: tier}} (local, no model call)
  GET  /health                      → plain-text health check

Every error body is {"error": "<message>"}:
  400  malformed client input
  429  rate limit hit
  503  OPENAI_API_KEY not configured
  502  upstream model / parse failure (or the upstream HTTP status, when OpenAI sent one)
"""
from __future__ import annotations

import json
import logging
import time
from collections import defaultdict, deque
from typing import Any

import openai
from aiohttp import web

import config
from advisor import AdvisorError, FurnitureAdvisor
from assessment import QuestionAnswer, normalize_confidence
from confidence import recalculate_all_insights

logger = logging.getLogger(__name__)

# Module-level cache, rebuilt when the key or model changes
_advisors: dict[tuple[str, str], FurnitureAdvisor] = {}

_rate_buckets: dict[str, deque] = defaultdict(deque)
# Sweep idle buckets once this many clients are tracked
RATE_SWEEP_AT = 1024


def get_advisor(api_key: str) -> FurnitureAdvisor:
    cache_key = (api_key, config.OPENAI_MODEL)
    advisor = _advisors.get(cache_key)
    if advisor is None:
        _advisors.clear()
        advisor = FurnitureAdvisor(api_key, config.OPENAI_MODEL)
        _advisors[cache_key] = advisor
        logger.info("Loaded advisor: openai/%s", advisor.model_id)
    return advisor


# ── Rate limiter ───────────────────────────────────────────────────────────────

def _is_rate_limited(client_id: str) -> bool:
    if config.RATE_MAX_REQUESTS <= 0:
        return False
    now = time.monotonic()
    if len(_rate_buckets) >= RATE_SWEEP_AT:
        _sweep_rate_buckets(now)
    bucket = _rate_buckets[client_id]
    while bucket and now - bucket[0] > config.RATE_WINDOW_SECS:
        bucket.popleft()
    if len(bucket) >= config.RATE_MAX_REQUESTS:
        return True
    bucket.append(now)
    return False


def _sweep_rate_buckets(now: float) -> None:
    """Drop every bucket whose newest request has left the window."""
    idle = [
        client_id for client_id, bucket in _rate_buckets.items()
        if not bucket or now - bucket[-1] > config.RATE_WINDOW_SECS
    ]
    for client_id in idle:
        del _rate_buckets[client_id]
    if idle:
        logger.debug("Rate limiter: dropped %d idle client(s)", len(idle))


def _client_id(request: web.Request) -> str:
    if config.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("X-Real-IP")
        if forwarded:
            return forwarded
    return request.remote or ""


# ── Helpers ────────────────────────────────────────────────────────────────────

def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json.dumps({"error": message}),
        content_type="application/json",
    )


def _guard(request: web.Request) -> str:
    """
    Checks shared by every model-backed endpoint, in order: key configured,
    then rate limit. Returns the API key.
    """
    api_key = config.OPENAI_API_KEY
    if not api_key:
        raise web.HTTPServiceUnavailable(
            text=json.dumps({"error": "OPENAI_API_KEY not configured"}),
            content_type="application/json",
        )
    if _is_rate_limited(_client_id(request)):
        raise web.HTTPTooManyRequests(
            text=json.dumps({
                "error": (
                    f"Too many requests — up to {config.RATE_MAX_REQUESTS} "
                    f"every {config.RATE_WINDOW_SECS} seconds. Please wait a moment."
                ),
            }),
            content_type="application/json",
        )
    return api_key


async def _read_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise _bad_request("Invalid JSON body")
    if not isinstance(body, dict):
        raise _bad_request("Invalid JSON body")
    return body


def _text_field(body: dict, key: str, default: str = "") -> str:
    value = body.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise _bad_request(f"'{key}' must be a string")
    return str(value)


def _photos_field(body: dict) -> list[str]:
    photos = body.get("photos")
    if photos is None:
        return []
    if not isinstance(photos, list) or not all(isinstance(p, str) for p in photos):
        raise _bad_request("'photos' must be a list of image data URLs")
    return photos


def _upstream_error(operation: str, fallback: str, exc: Exception) -> web.Response:
    """Map a failed model call to a JSON error response."""
    if isinstance(exc, AdvisorError):
        logger.error("OpenAI %s error: %s", operation, exc)
        return _error(str(exc), exc.status)
    if isinstance(exc, openai.APIStatusError):
        logger.error("OpenAI %s error (HTTP %d): %s", operation, exc.status_code, exc.message)
        return _error(exc.message or "OpenAI API error", exc.status_code)
    if isinstance(exc, openai.APIError):
        logger.error("OpenAI %s error: %s", operation, exc.message)
        return _error(exc.message or "OpenAI API error", 502)
    logger.exception("OpenAI %s error", operation)
    return _error(fallback, 502)


# ── Request handlers ───────────────────────────────────────────────────────────

async def handle_analyze_item(request: web.Request) -> web.Response:
    """Body: {photos: [data URL], price, notes} → AnalysisResult."""
    api_key = _guard(request)
    body    = await _read_body(request)

    photos = _photos_field(body)
    price  = _text_field(body, "price")
    notes  = _text_field(body, "notes")
    if not photos:
        raise _bad_request("At least one photo is required")

    try:
        result = await get_advisor(api_key).analyse_item(photos, price, notes)
    except Exception as exc:
        return _upstream_error("analyze-item", "Failed to analyze item", exc)

    logger.info(
        "Analyzed '%s' — %s (%s confidence)",
        result.title, result.recommendation.headline, result.recommendation.confidence,
    )
    return web.json_response(result.to_dict())


async def handle_generate_questions(request: web.Request) -> web.Response:
    """Body: {insightsNeedingHelp, photos?, price?, notes?, overallAnalysis?} → {questions}."""
    api_key = _guard(request)
    body    = await _read_body(request)

    insights = body.get("insightsNeedingHelp") or []
    if not isinstance(insights, list) or not all(isinstance(i, dict) for i in insights):
        raise _bad_request("'insightsNeedingHelp' must be a list of insights")
    if not insights:
        return web.json_response({"questions": []})

    photos = _photos_field(body)
    price  = _text_field(body, "price")
    notes  = _text_field(body, "notes")
    overall = body.get("overallAnalysis")

    try:
        questions = await get_advisor(api_key).generate_questions(
            insights, photos, price, notes,
            overall if isinstance(overall, dict) else None,
        )
    except Exception as exc:
        return _upstream_error("generate-questions", "Failed to generate questions", exc)

    return web.json_response({"questions": [q.to_dict() for q in questions]})


async def handle_generate_reasoning(request: web.Request) -> web.Response:
    """Body: {label?, value?, confidence?} → {reasoning}."""
    api_key = _guard(request)
    body    = await _read_body(request)

    label      = _text_field(body, "label", "Assessment")
    value      = _text_field(body, "value")
    confidence = _text_field(body, "confidence", "Medium")

    try:
        reasoning = await get_advisor(api_key).generate_reasoning(label, value, confidence)
    except Exception as exc:
        return _upstream_error("generate-reasoning", "Failed to generate reasoning", exc)

    return web.json_response({"reasoning": reasoning})


async def handle_recalculate_confidence(request: web.Request) -> web.Response:
    """
    Body: {insights: [{label, confidence}], answers: [QuestionAnswer]} → {updates}.
    Local heuristic only, so no key check and no rate limit.
    """
    body = await _read_body(request)

    insights = body.get("insights")
    answers  = body.get("answers") or []
    if not isinstance(insights, list) or not all(
        isinstance(i, dict) and isinstance(i.get("label"), str) for i in insights
    ):
        raise _bad_request("'insights' must be a list of {label, confidence}")
    if not isinstance(answers, list):
        raise _bad_request("'answers' must be a list")
    try:
        parsed = [QuestionAnswer.from_dict(a) for a in answers]
    except ValueError as exc:
        raise _bad_request(str(exc))

    normalized = [
        {"label": i["label"], "confidence": normalize_confidence(i.get("confidence"))}
        for i in insights
    ]
    return web.json_response({"updates": recalculate_all_insights(normalized, parsed)})


async def handle_health(request: web.Request) -> web.Response:
    """Health check, returns 200 OK. Use with uptime monitors."""
    key_state = "configured" if config.OPENAI_API_KEY else "missing"
    return web.Response(
        text=f"OK — model key {key_state}",
        content_type="text/plain",
    )


# ── App factory ────────────────────────────────────────────────────────────────

def build_web_app() -> web.Application:
    app = web.Application(client_max_size=config.MAX_BODY_MB * 1024 * 1024)
    app.router.add_get("/health",                        handle_health)
    app.router.add_post("/api/analyze-item",             handle_analyze_item)
    app.router.add_post("/api/generate-questions",       handle_generate_questions)
    app.router.add_post("/api/generate-reasoning",       handle_generate_reasoning)
    app.router.add_post("/api/recalculate-confidence",   handle_recalculate_confidence)
    return app


async def start_server() -> web.AppRunner:
    """Start the web server. Returns runner so caller can shut it down cleanly."""
    app    = build_web_app()
    runner = web.AppRunner(app, access_log=logger)
    await runner.setup()
    site = web.TCPSite(runner, config.HOST, config.PORT)
    await site.start()
    logger.info(
        "SecondLook API listening on %s:%d  (model: %s, key %s)",
        config.HOST,
        config.PORT,
        config.OPENAI_MODEL,
        "configured" if config.OPENAI_API_KEY else "NOT configured",
    )
    return runner
