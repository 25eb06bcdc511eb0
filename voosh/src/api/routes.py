"""
Voosh - API Routes
====================
Thin HTTP controllers over the services in ``app.state.services``.

Endpoints:
    POST   /session              → new session id
    POST   /chat/{session_id}    → one chat turn
    GET    /chat/{session_id}    → stored transcript
    DELETE /chat/{session_id}    → drop transcript
    GET    /featured?q=&k=       → featured cards
    GET    /health               → liveness probe

Error bodies are ``{"error": "<message>"}`` (``/featured`` adds
``"ok": false``).  No business logic lives here.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from voosh.src.container import ServiceContainer
from voosh.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

SERVICE_NAME = "voosh-rag"

FEATURED_MIN_K = 1
FEATURED_MAX_K = 20


class ChatRequest(BaseModel):
    query: str | None = None
    top_k: int | None = Field(default=None, ge=FEATURED_MIN_K, le=FEATURED_MAX_K)


def _services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={**extra, "error": message})


def _parse_k(raw: str | None) -> int | None:
    """Lenient ``k`` parsing: non-numeric → default, numeric → clamped to 1..20."""
    if raw is None or not raw.strip():
        return None
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        return None
    return max(FEATURED_MIN_K, min(FEATURED_MAX_K, value))


# ── Sessions & chat ────────────────────────────────────────────────────

@router.post("/session")
async def create_session() -> dict[str, str]:
    session_id = str(uuid.uuid4())
    logger.info("[API] Session created: %s", session_id)
    return {"sessionId": session_id}


@router.post("/chat/{session_id}")
async def chat(session_id: str, request: Request, body: ChatRequest | None = None):
    query = (body.query if body else None) or ""
    if not query.strip():
        return _error(400, "Query is required")

    try:
        turn = await _services(request).chat.handle_chat(session_id, query, body.top_k if body else None)
    except Exception as exc:
        logger.exception("[API] Chat failed for session '%s'.", session_id)
        return _error(500, str(exc))
    return {"sessionId": session_id, "query": query, **turn.to_dict()}


@router.get("/chat/{session_id}")
async def get_history(session_id: str, request: Request):
    try:
        history = await _services(request).chat.get_history(session_id)
    except Exception as exc:
        logger.exception("[API] History read failed for session '%s'.", session_id)
        return _error(500, str(exc))
    return {"sessionId": session_id, "history": history}


@router.delete("/chat/{session_id}")
async def clear_history(session_id: str, request: Request):
    try:
        cleared = await _services(request).chat.clear_history(session_id)
    except Exception as exc:
        logger.exception("[API] Clear failed for session '%s'.", session_id)
        return _error(500, str(exc))
    return {"sessionId": session_id, "cleared": cleared}


# ── Featured ───────────────────────────────────────────────────────────

@router.get("/featured")
async def featured(request: Request, q: str | None = None, k: str | None = None):
    try:
        data = await _services(request).featured.fetch(q, _parse_k(k))
    except Exception as exc:
        logger.exception("[API] Featured fetch failed.")
        return _error(500, str(exc), ok=False)
    return {"ok": True, **data}


# ── Health ─────────────────────────────────────────────────────────────

@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "service": SERVICE_NAME}
