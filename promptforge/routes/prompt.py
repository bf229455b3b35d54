from __future__ import annotations
"""
Promptforge: Prompt Refinement Routes
"""
import logging
import re
import traceback

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from promptforge import config
from promptforge import session_store
from promptforge.models import AnswerRequest, PromptSessionRequest, RefinementRequest, TurnResult
from promptforge.refinement_engine import ConversationController

logger = logging.getLogger(__name__)

IMAGE_ONLY_REQUEST = "Analyze this image"

_ERROR_STATUS = {
    "quota_exceeded": 429,
    "busy": 409,
    "invalid_state": 409,
    "invalid_attachment": 422,
}


def strip_html(text: str) -> str:
    return re.sub(r'<[^>]+>', '', text)


def _response(result: TurnResult, session_id: str) -> JSONResponse:
    status_code = 200
    if result.status == "error":
        status_code = _ERROR_STATUS.get(result.error.kind, 500)
    return JSONResponse(
        status_code=status_code,
        content={"session_id": session_id, **result.to_dict()},
    )


def _get_controller(session_id: str) -> ConversationController:
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session["controller"]


async def _run(operation, *args) -> TurnResult:
    try:
        return await run_in_threadpool(operation, *args)
    except Exception as e:
        logger.error(f"Prompt engine failed: {e}")
        traceback.print_exc()
        raise HTTPException(status_code=500, detail="Failed to process request")


router = APIRouter()

# Routes: Prompt Sessions
# ===========================================================================

@router.post("/api/prompt/sessions")
async def create_prompt_session(req: PromptSessionRequest, request: Request):
    """Start a conversation with the user's initial request."""
    user_content = strip_html(req.content.strip())
    if not user_content and req.image is None:
        raise HTTPException(status_code=422, detail="Input or image is required")
    user_content = user_content or IMAGE_ONLY_REQUEST

    controller = ConversationController(request.app.state.model_client)
    session = session_store.create_session(controller)

    image = req.image.data if req.image else None
    media_type = req.image.media_type if req.image else None
    try:
        result = await _run(
            controller.submit_initial_request,
            user_content,
            req.model or config.DEFAULT_MODEL,
            image,
            media_type,
        )
    except HTTPException:
        session_store.delete_session(session["id"])
        raise
    if result.status == "error" and result.state == "new":
        # Never started; a retry posts a fresh session.
        session_store.delete_session(session["id"])
    return _response(result, session["id"])


@router.get("/api/prompt/sessions/{session_id}")
async def get_prompt_session(session_id: str):
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {
        "session_id": session["id"],
        "created_at": session["created_at"],
        **session["controller"].state.to_dict(),
    }


@router.delete("/api/prompt/sessions/{session_id}")
async def delete_prompt_session(session_id: str):
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "deleted"}


@router.post("/api/prompt/sessions/{session_id}/answers")
async def answer_question(session_id: str, req: AnswerRequest):
    """Answer the pending question (or refine, once the prompt is final)."""
    controller = _get_controller(session_id)
    user_content = strip_html(req.content.strip())
    if not user_content:
        raise HTTPException(status_code=422, detail="Message content is required")

    image = req.image.data if req.image else None
    media_type = req.image.media_type if req.image else None
    result = await _run(controller.submit_answer, user_content, image, media_type)
    return _response(result, session_id)


@router.post("/api/prompt/sessions/{session_id}/refinements")
async def refine_prompt(session_id: str, req: RefinementRequest):
    controller = _get_controller(session_id)
    user_content = strip_html(req.content.strip())
    if not user_content:
        raise HTTPException(status_code=422, detail="Message content is required")

    result = await _run(controller.submit_refinement, user_content)
    return _response(result, session_id)


@router.post("/api/prompt/sessions/{session_id}/finalize")
async def finalize_prompt(session_id: str):
    """Skip remaining questions and generate the final prompt now."""
    controller = _get_controller(session_id)
    result = await _run(controller.finalize)
    return _response(result, session_id)
