from __future__ import annotations
"""
Promptforge: Error Taxonomy
============================
Every failure the refinement engine can report to a caller. The controller
catches these at its boundary and turns them into an ``error`` TurnResult;
nothing here is retried inside the engine.
"""


class PromptEngineError(Exception):
    """Base class. ``kind`` is the stable tag sent to callers."""

    kind = "engine_error"
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class MalformedModelOutput(PromptEngineError):
    """The model's text could not be classified or parsed."""

    kind = "malformed_output"
    retryable = True

    def __init__(self, message: str = "", raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class InvariantViolation(MalformedModelOutput):
    """Parsed JSON that cannot be a StructuredPrompt (wrong type, no known fields)."""


class QuotaExceeded(PromptEngineError):
    kind = "quota_exceeded"
    retryable = True


class TransportFailure(PromptEngineError):
    kind = "transport_failure"
    retryable = True


class InvalidAttachment(PromptEngineError):
    kind = "invalid_attachment"


class ConversationBusy(PromptEngineError):
    """A model call for this conversation is already in flight."""

    kind = "busy"
    retryable = True


class InvalidConversationState(PromptEngineError):
    kind = "invalid_state"
