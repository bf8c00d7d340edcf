"""Health and status endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request) -> dict:
    """Relay health: open connections and in-flight suggestion tasks."""
    state = request.app.state
    config = state.config
    return {
        "status": "ok",
        "connections": len(state.registry),
        "pending_suggestions": state.engine.pending,
        "model": config.model,
    }
