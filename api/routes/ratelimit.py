"""API routes for rate budget status."""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from api.state import require_runtime

router = APIRouter(prefix="/ratelimit", tags=["ratelimit"])


class RateBudgetStatus(BaseModel):
    """Current state of the shared provider-call budget."""

    provider: str
    limit: int
    used: int
    remaining: int
    usage_percent: float
    window_seconds: float
    blocked: bool
    retry_after_seconds: float
    status: Literal["ok", "warning", "critical", "blocked"]
    granted_total: int
    denied_total: int
    window_start: Optional[float] = None


@router.get("/status", response_model=RateBudgetStatus)
async def get_rate_budget_status():
    """Get usage of the rate budget in the current rolling window.

    Returns calls used and remaining, plus the penalty block if one is active.
    """
    governor = require_runtime().governor
    window = governor.snapshot()

    return {
        "provider": governor.name,
        "limit": window.budget,
        "used": window.call_count,
        "remaining": window.remaining,
        "usage_percent": round(window.usage_percent, 2),
        "window_seconds": window.window_seconds,
        "blocked": window.blocked_until is not None,
        "retry_after_seconds": round(governor.retry_after(), 3),
        "status": window.status,
        "granted_total": governor.granted_total,
        "denied_total": governor.denied_total,
        "window_start": window.window_start if window.call_count else None,
    }
