from __future__ import annotations
"""
Promptforge: Output Classifier & Tolerant Parser
=================================================
The model returns one unstructured text blob per call. This module decides
what that blob is:

  ReadySignal       the exact readiness token, nothing else
  StructuredResult  a JSON prompt, possibly fenced, wrapped in prose, or
                    carrying the doubled-quote artifact
  Malformed         looked like JSON but could not be parsed into a prompt
  Question          everything else

Classification is an ordered rule table (first match wins) so every
tie-break can be tested in isolation.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Union

from promptforge.errors import InvariantViolation
from promptforge.models import PROMPT_FIELDS, StructuredPrompt
from promptforge.prompt_builder import READY_TOKEN

logger = logging.getLogger(__name__)


# ===========================================================================
# Classified outputs
# ===========================================================================

@dataclass(frozen=True)
class Question:
    text: str
    kind = "question"


@dataclass(frozen=True)
class ReadySignal:
    kind = "ready"


@dataclass(frozen=True)
class StructuredResult:
    prompt: StructuredPrompt
    kind = "structured"


@dataclass(frozen=True)
class Malformed:
    raw_text: str
    reason: str
    kind = "malformed"


ClassifiedOutput = Union[Question, ReadySignal, StructuredResult, Malformed]


# ===========================================================================
# Extraction helpers
# ===========================================================================

# Pairs fences left to right; group 1 is the info string, group 2 the body.
_FENCE_RE = re.compile(r"```[ \t]*([A-Za-z0-9_+.-]*)[^\S\r\n]*\r?\n?([\s\S]*?)```")

# ""Role": -> "Role":  (only where a key can start)
_DOUBLED_QUOTE_RE = re.compile(r'(^|[{,\s])""([^"\r\n]+)"(\s*):')

_FIELD_ALTERNATION = "|".join(PROMPT_FIELDS)
_BARE_KEY_RE = re.compile(rf'^\s*"{{1,2}}(?:{_FIELD_ALTERNATION})"\s*:', re.IGNORECASE)
_EMBEDDED_OBJECT_RE = re.compile(rf'\{{\s*"{{1,2}}(?:{_FIELD_ALTERNATION})"\s*:', re.IGNORECASE)


def _json_fenced_block(text: str) -> str | None:
    """Body of the first fenced block holding the JSON, else None.

    A ```json block always counts. An untagged block counts only when its
    body opens like an object, so a question quoting plain code stays a
    question.
    """
    for match in _FENCE_RE.finditer(text):
        tag = match.group(1).lower()
        body = match.group(2).strip()
        if tag == "json":
            return body
        if tag == "" and (body.startswith("{") or _BARE_KEY_RE.match(body)):
            return body
    return None


def _balanced_object(text: str) -> str | None:
    """First balanced {...} span in text, skipping braces inside JSON strings.

    The span starts at the first object that opens with a prompt field key
    when there is one, otherwise at the first '{'. If the braces never
    balance (e.g. a truncated response), fall back to the greedy span up to
    the last '}'.
    """
    anchor = _EMBEDDED_OBJECT_RE.search(text)
    start = anchor.start() if anchor else text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    end = text.rfind("}")
    if end > start:
        return text[start:end + 1]
    return None


def repair_doubled_quotes(text: str) -> str:
    return _DOUBLED_QUOTE_RE.sub(r'\1"\2"\3:', text)


def extract_json_text(raw: str) -> str:
    """Reduce raw model output to the text most likely to be the JSON object."""
    text = raw.strip()

    fenced = _json_fenced_block(text)
    if fenced is not None:
        text = fenced

    if not (text.startswith("{") and text.endswith("}")):
        span = _balanced_object(raw)
        if span is not None:
            text = span
        elif _BARE_KEY_RE.match(text):
            # Opening brace dropped by the model
            text = "{" + text
            if not text.endswith("}"):
                text += "}"

    return repair_doubled_quotes(text)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "\n".join(_as_text(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def prompt_from_mapping(data: dict) -> StructuredPrompt:
    """Build a StructuredPrompt from parsed JSON.

    Keys match exactly first, then case-insensitively. Missing fields become
    empty text, but an object carrying none of the fields is rejected.
    """
    folded = {str(k).strip().lower(): v for k, v in data.items()}
    values = {}
    found = 0
    for field in PROMPT_FIELDS:
        if field in data:
            values[field] = _as_text(data[field])
            found += 1
        elif field.lower() in folded:
            values[field] = _as_text(folded[field.lower()])
            found += 1
        else:
            values[field] = ""

    if found == 0:
        raise InvariantViolation(
            f"JSON object has none of the prompt fields (got keys: {sorted(map(str, data))[:10]})"
        )
    return StructuredPrompt(**values)


def parse_structured_prompt(raw: str) -> StructuredPrompt:
    """Parse raw model output into a StructuredPrompt.

    Raises json.JSONDecodeError on invalid syntax and InvariantViolation when
    the parsed value cannot be a prompt.
    """
    cleaned = extract_json_text(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Trailing prose can end in '}' and pass for the end of the object
        span = _balanced_object(raw)
        if span is None:
            raise
        span = repair_doubled_quotes(span)
        if span == cleaned:
            raise
        data = json.loads(span)
    if not isinstance(data, dict):
        raise InvariantViolation(f"Expected a JSON object, got {type(data).__name__}")
    return prompt_from_mapping(data)


# ===========================================================================
# Rules
# ===========================================================================

def _is_ready(raw: str) -> bool:
    return raw.strip() == READY_TOKEN


def _is_structured_candidate(raw: str) -> bool:
    stripped = raw.strip()
    return (
        stripped.startswith("{")
        or _json_fenced_block(raw) is not None
        or _BARE_KEY_RE.match(stripped) is not None
        or _EMBEDDED_OBJECT_RE.search(raw) is not None
    )


def _always(raw: str) -> bool:
    return True


def _to_ready(raw: str) -> ClassifiedOutput:
    return ReadySignal()


def _to_structured(raw: str) -> ClassifiedOutput:
    try:
        return StructuredResult(parse_structured_prompt(raw))
    except InvariantViolation as e:
        logger.error(f"[output_parser] Invariant violation: {e.message}")
        return Malformed(raw_text=raw, reason=e.message)
    except json.JSONDecodeError as e:
        preview = raw[:200].replace("\n", "\\n")
        logger.warning(f"[output_parser] Invalid JSON from model ({e}): {preview}")
        return Malformed(raw_text=raw, reason=f"Invalid JSON received from model: {e}")


def _to_question(raw: str) -> ClassifiedOutput:
    return Question(raw.strip())


CLASSIFICATION_RULES: list[tuple[str, Callable[[str], bool], Callable[[str], ClassifiedOutput]]] = [
    ("ready", _is_ready, _to_ready),
    ("structured", _is_structured_candidate, _to_structured),
    ("question", _always, _to_question),
]


def classify_output(raw: str | None) -> ClassifiedOutput:
    """Classify one model response. Never raises."""
    raw = raw or ""
    if not raw.strip():
        return Malformed(raw_text=raw, reason="Model returned an empty response")
    for name, predicate, handler in CLASSIFICATION_RULES:
        if predicate(raw):
            result = handler(raw)
            logger.debug(f"[output_parser] rule={name} -> {result.kind}")
            return result
    # CLASSIFICATION_RULES ends with a catch-all
    raise AssertionError("no classification rule matched")
