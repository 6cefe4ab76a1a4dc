"""API routes for alert cooldowns."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from api.state import require_runtime

router = APIRouter(prefix="/signals", tags=["signals"])


class CooldownInfo(BaseModel):
    symbol: str
    last_direction: str
    last_approved_at: float
    remaining_seconds: float
    active: bool


class CooldownsResponse(BaseModel):
    cooldowns: List[CooldownInfo]
    cooldown_seconds: float
    count: int


@router.get("/cooldowns", response_model=CooldownsResponse)
async def get_cooldowns():
    """List the last approved alert per symbol and the time left in its window."""
    arbiter = require_runtime().arbiter

    result = []
    for entry in arbiter.entries():
        remaining = arbiter.remaining(entry.symbol)
        result.append(
            {
                **entry.to_dict(),
                "remaining_seconds": round(remaining, 3),
                "active": remaining > 0,
            }
        )

    return {"cooldowns": result, "cooldown_seconds": arbiter.cooldown_seconds, "count": len(result)}
