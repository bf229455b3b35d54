"""
Tier Selector: maps a model identifier to the instruction tier that controls
how verbose and rigorous the generated prompt should be.
"""
from __future__ import annotations

import re
from enum import Enum


class Tier(str, Enum):
    CONCISE = "concise"
    BALANCED = "balanced"
    EXHAUSTIVE = "exhaustive"


LIGHTWEIGHT_MARKERS = ("lite", "haiku", "mini", "flash-8b")
TOP_TIER_MARKERS = ("opus", "pro")

# Evaluated top to bottom, first match wins. Lightweight beats top-tier so
# that e.g. "gemini-pro-lite" stays concise.
TIER_RULES: list[tuple[tuple[str, ...], Tier]] = [
    (LIGHTWEIGHT_MARKERS, Tier.CONCISE),
    (TOP_TIER_MARKERS, Tier.EXHAUSTIVE),
]

DEFAULT_TIER = Tier.BALANCED

TIER_INSTRUCTIONS: dict[Tier, str] = {
    Tier.CONCISE: (
        "Generate a concise but effective prompt. Keep descriptions brief but clear. "
        "Focus on the essentials."
    ),
    Tier.BALANCED: (
        "Generate a detailed and well-structured prompt. Provide good context and clear "
        "constraints. Balanced length."
    ),
    Tier.EXHAUSTIVE: (
        "Generate an extremely comprehensive, exhaustive, and robust prompt. Leave absolutely "
        "no room for error. Use deep context, complex constraints, and multi-step objectives."
    ),
}


def _has_marker(name: str, marker: str) -> bool:
    # Markers are whole identifier segments: "mini" matches "gpt-4o-mini" but not "gemini".
    return re.search(rf"(?<![a-z0-9]){re.escape(marker)}(?![a-z0-9])", name) is not None


def select_tier(model: str | None) -> Tier:
    """Return the tier for a model identifier. Never raises."""
    name = (model or "").lower()
    for markers, tier in TIER_RULES:
        if any(_has_marker(name, marker) for marker in markers):
            return tier
    return DEFAULT_TIER


def tier_instruction(tier: Tier) -> str:
    return TIER_INSTRUCTIONS[tier]
