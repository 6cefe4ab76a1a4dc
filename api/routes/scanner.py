"""API routes for scan cycles and symbol exclusions."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from api.state import require_runtime

router = APIRouter(prefix="/scanner", tags=["scanner"])


class ScannerStatusResponse(BaseModel):
    running: bool
    cycles_completed: int
    tracked_symbols: int
    excluded_symbols: int
    last_report: Optional[Dict[str, Any]] = None


class ExclusionInfo(BaseModel):
    symbol: str
    state: Literal["active", "excluded", "probation"]
    failure_streak: int
    backoff_index: int
    excluded_at: Optional[float] = None
    expires_at: Optional[float] = None


class ExclusionsResponse(BaseModel):
    exclusions: List[ExclusionInfo]
    count: int


@router.get("/status", response_model=ScannerStatusResponse)
async def get_scanner_status():
    """Get scan loop state and the summary of the last completed cycle."""
    runtime = require_runtime()
    orchestrator = runtime.orchestrator
    stats = runtime.registry.stats()
    report = orchestrator.last_report

    return {
        "running": orchestrator.is_running,
        "cycles_completed": orchestrator.cycles_completed,
        "tracked_symbols": stats.total_tracked,
        "excluded_symbols": stats.total_excluded,
        "last_report": report.to_dict() if report is not None else None,
    }


@router.get("/exclusions", response_model=ExclusionsResponse)
async def get_exclusions(
    excluded_only: bool = Query(False, description="Only symbols currently excluded"),
):
    """List tracked symbols with their failure streak and backoff state."""
    registry = require_runtime().registry

    result = []
    for entry in registry.entries():
        state = registry.state(entry.symbol)
        if excluded_only and state != "excluded":
            continue
        result.append({**entry.to_dict(), "state": state})

    return {"exclusions": result, "count": len(result)}
