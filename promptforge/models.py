from __future__ import annotations
"""
Promptforge: Pydantic Request/Response Models
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PROMPT_FIELDS = ("Role", "Objective", "Context", "Constraints", "Style")


class StructuredPrompt(BaseModel):
    """The five-field final prompt. Serialized with the capitalized keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role: str = Field(default="", alias="Role")
    objective: str = Field(default="", alias="Objective")
    context: str = Field(default="", alias="Context")
    constraints: str = Field(default="", alias="Constraints")
    style: str = Field(default="", alias="Style")

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# ===========================================================================
# Engine results
# ===========================================================================

class ErrorInfo(BaseModel):
    kind: str
    message: str
    retryable: bool = False


class TurnResult(BaseModel):
    """What every controller operation returns. ``status`` is the tag."""

    status: Literal["question", "ready", "complete", "error"]
    question: str | None = None
    prompt: StructuredPrompt | None = None
    error: ErrorInfo | None = None
    questions_asked: int = 0
    state: str

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ===========================================================================
# Routes
# ===========================================================================

class ImageRequest(BaseModel):
    data: str = Field(..., min_length=1, description="Base64 payload or data: URL")
    media_type: str | None = Field(default=None, max_length=50)


class PromptSessionRequest(BaseModel):
    content: str = Field(default="", max_length=10000)
    model: str | None = Field(default=None, max_length=100)
    image: ImageRequest | None = None


class AnswerRequest(BaseModel):
    content: str = Field(default="", max_length=10000)
    image: ImageRequest | None = None


class RefinementRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)
