from __future__ import annotations
"""
Promptforge: Conversation Controller
=====================================
Drives one prompt-refinement conversation:

Questioning:  the model asks up to three clarification questions, one per
              call. It can end this phase early with [READY] or by emitting
              the JSON prompt directly. After the third answer the
              controller forces a finalize call itself.

ReadyToFinalize:  transient. Entered on [READY]; the controller immediately
              makes one finalize call. Only persists if that call fails or
              the model answers [READY] again.

Finalized / Refining:  a StructuredPrompt exists. Every further user input
              is a refinement that regenerates the prompt wholesale.

One controller owns one ConversationState. Calls for the same conversation
never overlap: a submission that arrives while a model call is in flight is
rejected with ConversationBusy.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum

from promptforge.attachments import ImagePart, normalize_image
from promptforge.errors import (
    ConversationBusy,
    InvalidConversationState,
    MalformedModelOutput,
    PromptEngineError,
)
from promptforge.history import REFINEMENT_LABEL, Turn
from promptforge.models import ErrorInfo, StructuredPrompt, TurnResult
from promptforge.output_parser import (
    ClassifiedOutput,
    Malformed,
    Question,
    ReadySignal,
    StructuredResult,
    classify_output,
)
from promptforge.prompt_builder import MAX_CLARIFICATION_QUESTIONS, PromptMode, build_prompt
from promptforge.tiers import select_tier

logger = logging.getLogger(__name__)


class ConversationStatus(str, Enum):
    NEW = "new"
    QUESTIONING = "questioning"
    READY_TO_FINALIZE = "ready_to_finalize"
    FINALIZED = "finalized"
    REFINING = "refining"


@dataclass
class ConversationState:
    user_request: str = ""
    model: str = ""
    turns: list[Turn] = field(default_factory=list)
    questions_asked: int = 0
    status: ConversationStatus = ConversationStatus.NEW
    pending_question: str | None = None
    final_result: StructuredPrompt | None = None

    def to_dict(self) -> dict:
        return {
            "user_request": self.user_request,
            "model": self.model,
            "tier": select_tier(self.model).value if self.model else None,
            "status": self.status.value,
            "questions_asked": self.questions_asked,
            "pending_question": self.pending_question,
            "turns": [t.to_dict() for t in self.turns],
            "final_result": self.final_result.to_dict() if self.final_result else None,
        }


class ConversationController:
    """State machine for a single conversation.

    ``model_client`` is any object with
    ``invoke(instruction_text, model, image=None) -> str``.
    """

    def __init__(self, model_client):
        self.model_client = model_client
        self.state = ConversationState()
        self._lock = threading.Lock()

    # -----------------------------------------------------------------------
    # Caller-facing operations
    # -----------------------------------------------------------------------

    def submit_initial_request(
        self,
        text: str,
        model: str,
        image: str | bytes | None = None,
        media_type: str | None = None,
    ) -> TurnResult:
        return self._run(self._initial_request, text, model, image, media_type)

    def submit_answer(
        self,
        text: str,
        image: str | bytes | None = None,
        media_type: str | None = None,
    ) -> TurnResult:
        return self._run(self._answer, text, image, media_type)

    def submit_refinement(self, text: str) -> TurnResult:
        return self._run(self._refinement, text)

    def finalize(self) -> TurnResult:
        """Ask for the final prompt now, skipping any remaining questions."""
        return self._run(self._manual_finalize)

    # -----------------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------------

    def _run(self, operation, *args) -> TurnResult:
        if not self._lock.acquire(blocking=False):
            logger.warning("[controller] Rejected submission: a model call is already in flight")
            return self._error(ConversationBusy("A response is still being generated for this conversation"))
        try:
            return operation(*args)
        except PromptEngineError as e:
            return self._error(e)
        finally:
            self._lock.release()

    def _result(self, status: str, **kwargs) -> TurnResult:
        return TurnResult(
            status=status,
            questions_asked=self.state.questions_asked,
            state=self.state.status.value,
            **kwargs,
        )

    def _error(self, error: PromptEngineError) -> TurnResult:
        return self._result("error", error=ErrorInfo(**error.to_dict()))

    def _call(
        self,
        mode: PromptMode,
        turns: list[Turn],
        image: ImagePart | None = None,
    ) -> ClassifiedOutput:
        state = self.state
        instruction = build_prompt(
            user_request=state.user_request,
            history=turns,
            tier=select_tier(state.model),
            mode=mode,
            questions_asked=state.questions_asked,
            current_prompt=state.final_result,
        )
        raw = self.model_client.invoke(instruction, state.model, image)
        classified = classify_output(raw)
        logger.info(
            f"[controller] mode={mode.value} status={state.status.value} "
            f"questions_asked={state.questions_asked} -> {classified.kind}"
        )
        return classified

    @staticmethod
    def _malformed(output: Malformed) -> MalformedModelOutput:
        return MalformedModelOutput(output.reason, raw_text=output.raw_text)

    # -----------------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------------

    def _initial_request(self, text, model, image, media_type) -> TurnResult:
        state = self.state
        if state.status != ConversationStatus.NEW:
            raise InvalidConversationState("This conversation has already started")
        text = (text or "").strip()
        if not text:
            raise InvalidConversationState("The initial request must not be empty")

        attachment = normalize_image(image, media_type)
        state.user_request = text
        state.model = model
        state.status = ConversationStatus.QUESTIONING

        started = False
        try:
            output = self._call(PromptMode.CLARIFY, state.turns, attachment)
            if isinstance(output, Malformed):
                raise self._malformed(output)
            started = True
        finally:
            if not started:
                # Nothing was learned; the caller resubmits the same request.
                state.status = ConversationStatus.NEW
        return self._apply_clarify_output(output, state.turns, attachment)

    def _answer(self, text, image, media_type) -> TurnResult:
        state = self.state
        if state.status in (ConversationStatus.FINALIZED, ConversationStatus.REFINING):
            return self._refinement(text, image, media_type)
        if state.status == ConversationStatus.NEW:
            raise InvalidConversationState("Submit an initial request first")
        if state.status == ConversationStatus.READY_TO_FINALIZE:
            raise InvalidConversationState("No question is pending; request the final prompt instead")

        text = (text or "").strip()
        if not text:
            raise InvalidConversationState("The answer must not be empty")
        attachment = normalize_image(image, media_type)

        turns = state.turns + [Turn(question=state.pending_question or "", answer=text)]

        if state.questions_asked >= MAX_CLARIFICATION_QUESTIONS:
            logger.info(
                f"[controller] Question ceiling ({MAX_CLARIFICATION_QUESTIONS}) reached; forcing finalize"
            )
            return self._finalize_with(turns, attachment)

        output = self._call(PromptMode.CLARIFY, turns, attachment)
        if isinstance(output, Malformed):
            raise self._malformed(output)
        return self._apply_clarify_output(output, turns, attachment)

    def _apply_clarify_output(
        self,
        output: ClassifiedOutput,
        turns: list[Turn],
        image: ImagePart | None = None,
    ) -> TurnResult:
        state = self.state
        if isinstance(output, Question):
            state.turns = turns
            state.questions_asked += 1
            state.pending_question = output.text
            return self._result("question", question=output.text)

        if isinstance(output, StructuredResult):
            state.turns = turns
            return self._complete(output.prompt)

        # ReadySignal: commit what we have, then make the finalize call now
        # with the same attachment.
        state.turns = turns
        state.pending_question = None
        state.status = ConversationStatus.READY_TO_FINALIZE
        return self._finalize_with(state.turns, image)

    def _manual_finalize(self) -> TurnResult:
        state = self.state
        if state.status not in (ConversationStatus.QUESTIONING, ConversationStatus.READY_TO_FINALIZE):
            raise InvalidConversationState(
                f"Cannot finalize a conversation in state {state.status.value}"
            )
        return self._finalize_with(state.turns)

    def _finalize_with(self, turns: list[Turn], image: ImagePart | None = None) -> TurnResult:
        state = self.state
        output = self._call(PromptMode.FINALIZE, turns, image)

        if isinstance(output, StructuredResult):
            state.turns = turns
            return self._complete(output.prompt)

        if isinstance(output, ReadySignal):
            state.turns = turns
            state.pending_question = None
            state.status = ConversationStatus.READY_TO_FINALIZE
            return self._result("ready")

        if isinstance(output, Question):
            logger.warning("[controller] Model asked a question during finalize; not surfacing it")
            error = MalformedModelOutput(
                "Model asked another question instead of producing the final prompt",
                raw_text=output.text,
            )
        else:
            error = self._malformed(output)
        raise error

    def _refinement(self, text, image=None, media_type=None) -> TurnResult:
        state = self.state
        if state.status not in (ConversationStatus.FINALIZED, ConversationStatus.REFINING):
            raise InvalidConversationState("There is no final prompt to refine yet")
        text = (text or "").strip()
        if not text:
            raise InvalidConversationState("The refinement must not be empty")

        attachment = normalize_image(image, media_type)

        turns = state.turns + [Turn(question=REFINEMENT_LABEL, answer=text)]
        state.status = ConversationStatus.REFINING
        try:
            output = self._call(PromptMode.REFINE, turns, attachment)
        finally:
            state.status = ConversationStatus.FINALIZED

        if isinstance(output, StructuredResult):
            state.turns = turns
            return self._complete(output.prompt)
        if isinstance(output, Malformed):
            raise self._malformed(output)
        raise MalformedModelOutput(
            "Model did not return a revised prompt",
            raw_text=output.text if isinstance(output, Question) else "",
        )

    def _complete(self, prompt: StructuredPrompt) -> TurnResult:
        state = self.state
        state.final_result = prompt
        state.pending_question = None
        state.status = ConversationStatus.FINALIZED
        return self._result("complete", prompt=prompt)
