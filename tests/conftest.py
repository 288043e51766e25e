"""
Shared pytest fixtures.

Every test starts from a known configuration (a fake OpenAI key, default
limits) and with the server's module-level caches emptied, so tests are
fully isolated from each other and from the developer's real .env.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    import config
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(config, "OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setattr(config, "MAX_PHOTOS", 3)
    monkeypatch.setattr(config, "MAX_QUESTIONS", 2)
    monkeypatch.setattr(config, "RATE_MAX_REQUESTS", 10)
    monkeypatch.setattr(config, "RATE_WINDOW_SECS", 60)
    monkeypatch.setattr(config, "TRUST_PROXY_HEADERS", False)
    yield config


@pytest.fixture(autouse=True)
def reset_server_state():
    """Empty the advisor cache and the rate-limiter buckets."""
    import server
    server._advisors.clear()
    server._rate_buckets.clear()
    yield
    server._advisors.clear()
    server._rate_buckets.clear()
