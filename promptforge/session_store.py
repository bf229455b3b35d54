"""
In-memory conversation registry. Sessions live for the lifetime of the
process; there is no persistence.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from promptforge.refinement_engine import ConversationController

_sessions: dict[str, dict] = {}
_lock = threading.Lock()


def create_session(controller: ConversationController) -> dict:
    session = {
        "id": uuid.uuid4().hex,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "controller": controller,
    }
    with _lock:
        _sessions[session["id"]] = session
    return session


def get_session(session_id: str) -> dict | None:
    with _lock:
        return _sessions.get(session_id)


def delete_session(session_id: str) -> bool:
    with _lock:
        return _sessions.pop(session_id, None) is not None


def clear_sessions() -> None:
    """Drop every session. Useful for testing."""
    with _lock:
        _sessions.clear()
