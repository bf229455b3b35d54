from __future__ import annotations
"""
Promptforge: Prompt Synthesizer
================================
Builds the exact instruction text sent to the model for one call. Pure:
no I/O, no clock, same inputs give the same text.

Three modes:
  clarify:  ask one question, signal [READY], or emit the JSON
  finalize: question budget is spent (or the model said [READY]); emit JSON now
  refine:   a prompt already exists; apply the user's feedback and emit new JSON
"""

from enum import Enum
from typing import Iterable

from promptforge.history import REFINEMENT_LABEL, Turn, render_history, window
from promptforge.models import StructuredPrompt
from promptforge.tiers import Tier, tier_instruction

READY_TOKEN = "[READY]"
MAX_CLARIFICATION_QUESTIONS = 3


class PromptMode(str, Enum):
    CLARIFY = "clarify"
    FINALIZE = "finalize"
    REFINE = "refine"


ROLE_PREAMBLE = """You are an elite AI Prompt Engineer. Your goal is to craft the most detailed, comprehensive, and robust prompts possible with full description.
The final prompt you generate must be "Full Context", meaning it should leave no ambiguity for the target LLM.

Your Process:
1.  **Analyze**: Deeply understand the user's request.
2.  **Clarify**: If the request is vague, simple, or lacks specific details (like tone, audience, format, constraints), ask a clarification question.
    *   Do NOT guess user intent. If a detail seems important but is missing, ask.
    *   Questions should be **short, direct, and high-impact**.
    *   Ask only ONE question at a time.
    *   You may ask at most {max_questions} questions in total.
3.  **Generate**: Once you have sufficient information, generate the final JSON.
4.  **Refine**: If the user provides feedback or asks for changes AFTER you have generated a JSON prompt, update the prompt accordingly and output the NEW JSON.

Final Output Requirements (JSON):
*   **Role**: Define a specific, expert persona.
*   **Objective**: A detailed, step-by-step description of the task.
*   **Context**: Include ALL relevant background info, user preferences, and conversation details.
*   **Constraints**: Strict rules, formatting requirements, and "do nots".
*   **Style**: Define the exact tone, voice, and writing style (e.g., "Professional but approachable", "Technical and precise")."""


OUTPUT_CONTRACT = """Output Rules:
Your entire response MUST be exactly ONE of the following:
1.  A single plain-text clarification question, with nothing else.
2.  The literal token {ready_token} on its own, if you have enough information but want the system to request the final prompt.
3.  A valid JSON object with exactly these five string fields and nothing else:
{{
  "Role": "...",
  "Objective": "...",
  "Context": "...",
  "Constraints": "...",
  "Style": "..."
}}
Output the JSON raw. Do NOT wrap it in markdown code fences and do NOT add any text before or after it."""


CLARIFY_INSTRUCTION = """Clarification questions asked so far: {asked} of {max_questions}.
If the request is already clear enough, skip further questions and output the JSON (or {ready_token})."""

FINALIZE_INSTRUCTION = """CRITICAL OVERRIDE: The clarification phase is over. Do NOT ask any more questions and do NOT output {ready_token}.
Output the final JSON prompt now, based on the user request and everything learned in the conversation history. Where a detail is still missing, make a sensible, clearly stated assumption inside the Context field."""

REFINE_INSTRUCTION = """REFINEMENT: You have already produced the prompt below. The most recent "{label}" entry in the conversation history is the user's feedback on it.
Apply that feedback and output the complete NEW JSON prompt. Keep the same five fields; rewrite any field the feedback touches and keep the others consistent with it.

Current prompt:
{current_prompt}"""


def build_prompt(
    user_request: str,
    history: Iterable[Turn],
    tier: Tier,
    mode: PromptMode = PromptMode.CLARIFY,
    questions_asked: int = 0,
    current_prompt: StructuredPrompt | None = None,
) -> str:
    """Assemble the instruction text for one model call.

    ``history`` may be the full turn list; only the last window of turns is
    rendered. Images are not referenced here, the model client attaches them
    as a separate content part.
    """
    sections = [
        ROLE_PREAMBLE.format(max_questions=MAX_CLARIFICATION_QUESTIONS),
        f"TIER REQUIREMENT: You are currently in the **{tier.value.upper()}** tier. {tier_instruction(tier)}",
        OUTPUT_CONTRACT.format(ready_token=READY_TOKEN),
    ]

    if mode == PromptMode.CLARIFY:
        sections.append(CLARIFY_INSTRUCTION.format(
            asked=questions_asked,
            max_questions=MAX_CLARIFICATION_QUESTIONS,
            ready_token=READY_TOKEN,
        ))
    elif mode == PromptMode.FINALIZE:
        sections.append(FINALIZE_INSTRUCTION.format(ready_token=READY_TOKEN))
    else:
        current = current_prompt.to_json() if current_prompt is not None else "(none)"
        sections.append(REFINE_INSTRUCTION.format(label=REFINEMENT_LABEL, current_prompt=current))

    sections.append(f'User request:\n"{user_request}"')
    sections.append(f"Conversation history:\n{render_history(window(history))}")

    return "\n\n".join(sections) + "\n"
