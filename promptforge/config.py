from __future__ import annotations
"""
Promptforge: Configuration
===========================
Environment-driven settings, loaded once from the project's .env file.
Engine constants (history window, question ceiling, readiness token) are
not configurable and live next to the code that uses them.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from promptforge.tiers import select_tier

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
DEFAULT_MODEL = os.getenv("DEFAULT_MODEL", "claude-haiku-4-5")
AVAILABLE_MODELS = [
    m.strip()
    for m in os.getenv(
        "AVAILABLE_MODELS", "claude-haiku-4-5,claude-sonnet-4-5,claude-opus-4-1"
    ).split(",")
    if m.strip()
]
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", "4000"))
ANTHROPIC_TIMEOUT = float(os.getenv("ANTHROPIC_TIMEOUT", "120"))

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))


def describe_models() -> list[dict]:
    """Available models with the tier each one maps to (for /api/config)."""
    return [{"model": m, "tier": select_tier(m).value} for m in AVAILABLE_MODELS]
