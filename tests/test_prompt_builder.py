#!/usr/bin/env python3
"""
Prompt Synthesizer Tests
=========================
Checks the structure of the instruction text. Zero LLM calls.
"""
from __future__ import annotations
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from promptforge.history import REFINEMENT_LABEL, Turn
from promptforge.models import StructuredPrompt
from promptforge.prompt_builder import READY_TOKEN, PromptMode, build_prompt
from promptforge.tiers import Tier, tier_instruction


def test_sections_appear_in_order():
    text = build_prompt("Write a blog post", [], Tier.BALANCED)
    order = [
        text.index("elite AI Prompt Engineer"),
        text.index("BALANCED"),
        text.index(READY_TOKEN),
        text.index("Clarification questions asked so far"),
        text.index('User request:\n"Write a blog post"'),
        text.index("Conversation history:\nNone"),
    ]
    assert order == sorted(order)
    print("  [OK] preamble, tier, contract, mode, request, history")


def test_four_step_process_and_fields_present():
    text = build_prompt("x", [], Tier.CONCISE)
    for step in ("Analyze", "Clarify", "Generate", "Refine"):
        assert f"**{step}**" in text
    for key in ("Role", "Objective", "Context", "Constraints", "Style"):
        assert f'"{key}": "..."' in text
    assert tier_instruction(Tier.CONCISE) in text
    print("  [OK] process steps and JSON contract")


def test_history_is_windowed_to_last_three():
    turns = [Turn(f"question {i}", f"answer {i}") for i in range(5)]
    text = build_prompt("x", turns, Tier.BALANCED)
    assert "question 0" not in text and "question 1" not in text
    assert "Q: question 2\nA: answer 2" in text
    assert "Q: question 4\nA: answer 4" in text
    print("  [OK] only last 3 turns rendered")


def test_user_request_is_verbatim():
    request = 'Summarize "quarterly" earnings\ntrends'
    assert f'"{request}"' in build_prompt(request, [], Tier.BALANCED)
    print("  [OK] request quoted verbatim")


def test_deterministic():
    turns = [Turn("a", "b")]
    assert build_prompt("x", turns, Tier.EXHAUSTIVE) == build_prompt("x", turns, Tier.EXHAUSTIVE)
    print("  [OK] deterministic")


def test_question_counter_in_clarify_mode():
    text = build_prompt("x", [], Tier.BALANCED, PromptMode.CLARIFY, questions_asked=2)
    assert "asked so far: 2 of 3" in text
    print("  [OK] counter rendered")


def test_finalize_mode_forbids_questions():
    text = build_prompt("x", [], Tier.BALANCED, PromptMode.FINALIZE)
    assert "CRITICAL OVERRIDE" in text
    assert "Clarification questions asked so far" not in text
    print("  [OK] finalize override")


def test_refine_mode_includes_current_prompt():
    current = StructuredPrompt(Role="Analyst", Objective="Summarize", Context="Q3",
                               Constraints="200 words", Style="Formal")
    turns = [Turn(REFINEMENT_LABEL, "Make it shorter")]
    text = build_prompt("x", turns, Tier.BALANCED, PromptMode.REFINE, current_prompt=current)
    assert "REFINEMENT" in text
    assert '"Role": "Analyst"' in text
    assert f"Q: {REFINEMENT_LABEL}\nA: Make it shorter" in text
    print("  [OK] refine mode carries current prompt")


if __name__ == "__main__":
    print("\n── Prompt Synthesizer ──")
    test_sections_appear_in_order()
    test_four_step_process_and_fields_present()
    test_history_is_windowed_to_last_three()
    test_user_request_is_verbatim()
    test_deterministic()
    test_question_counter_in_clarify_mode()
    test_finalize_mode_forbids_questions()
    test_refine_mode_includes_current_prompt()
    print("✅ ALL TESTS PASSED")
