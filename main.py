from __future__ import annotations
"""
Promptforge: FastAPI Backend
=============================
Main application entry point. Defines app, lifespan, CORS, and includes
route modules. All route handlers live in promptforge/routes/.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptforge import config
from promptforge.model_client import ModelClient

logger = logging.getLogger("promptforge")


# ---------------------------------------------------------------------------
# Lifespan (startup / shutdown)
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    # One model client per process, shared by every conversation
    app.state.model_client = ModelClient()
    print(f"[startup] Default model: {config.DEFAULT_MODEL}")
    print(f"[startup] Available models: {config.AVAILABLE_MODELS}")
    if not config.ANTHROPIC_API_KEY:
        print("[startup] WARNING: ANTHROPIC_API_KEY not set; model calls will fail.")

    yield
    # Shutdown (nothing to clean up)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Promptforge",
    description="Turns vague requests into structured prompts through a short clarification dialogue",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health check (inline, too small for its own module)
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "promptforge"}


@app.get("/api/config")
async def app_config():
    """Models the frontend may offer and the tier each one maps to."""
    return {
        "default_model": config.DEFAULT_MODEL,
        "models": config.describe_models(),
    }


# ---------------------------------------------------------------------------
# Include route modules
# ---------------------------------------------------------------------------

from promptforge.routes.prompt import router as prompt_router

app.include_router(prompt_router, tags=["Prompt"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=config.HOST, port=config.PORT, reload=False)
