"""
History Window Manager
=======================
Clarification history is kept in full on the conversation, but only the most
recent turns are ever sent to the model. Truncation is positional; nothing is
summarized.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

HISTORY_WINDOW_SIZE = 3
EMPTY_HISTORY_MARKER = "None"
REFINEMENT_LABEL = "Refinement request"


@dataclass(frozen=True)
class Turn:
    """One completed exchange: the question shown and the user's answer."""

    question: str
    answer: str

    @property
    def is_refinement(self) -> bool:
        return self.question == REFINEMENT_LABEL

    def to_dict(self) -> dict:
        return {"question": self.question, "answer": self.answer}


def window(turns: Iterable[Turn], size: int = HISTORY_WINDOW_SIZE) -> list[Turn]:
    """Return the last ``size`` turns, oldest first."""
    turns = list(turns)
    if size <= 0:
        return []
    return turns[-size:]


def render_history(turns: Iterable[Turn]) -> str:
    turns = list(turns)
    if not turns:
        return EMPTY_HISTORY_MARKER
    return "\n\n".join(f"Q: {t.question}\nA: {t.answer}" for t in turns)
