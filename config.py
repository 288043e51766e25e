"""
Central configuration: reads from .env file.

Every value is a plain module attribute. Code reads config.X at call time
(never `from config import X`) so a changed value is picked up on the next
request and tests can monkeypatch it.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── OpenAI ────────────────────────────────────────────────────────────────────
# All model-backed endpoints answer 503 while this is unset.
OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY") or None
OPENAI_MODEL: str          = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# ── Web server ────────────────────────────────────────────────────────────────
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8080"))

# Photos arrive as base64 data URLs, so request bodies are large.
MAX_BODY_MB: int = int(os.getenv("MAX_BODY_MB", "20"))

# ── Analysis ──────────────────────────────────────────────────────────────────
# Cap images sent to the model per analysis (cost control)
MAX_PHOTOS: int    = int(os.getenv("MAX_PHOTOS", "3"))
MAX_QUESTIONS: int = 2

# ── Rate limiting (model-backed endpoints only) ───────────────────────────────
# Sliding window per client address. RATE_MAX_REQUESTS=0 disables the limit.
RATE_MAX_REQUESTS: int = int(os.getenv("RATE_MAX_REQUESTS", "10"))
RATE_WINDOW_SECS: int  = int(os.getenv("RATE_WINDOW_SECS", "60"))
# Only set true behind a reverse proxy that overwrites X-Real-IP (nginx
# `proxy_set_header X-Real-IP $remote_addr`); clients can forge it otherwise.
TRUST_PROXY_HEADERS: bool = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"

# Log per-request token cost estimates (useful during development)
SHOW_COST_INFO: bool = os.getenv("SHOW_COST_INFO", "true").lower() == "true"

# Log file lives here
DATA_DIR: str = os.getenv("DATA_DIR", "data")
