"""FastAPI application exposing scanner status.

This module provides a read-only HTTP API for:
- GET /health - Liveness plus scanner configuration check
- GET /ratelimit/status - Rate budget usage and penalty block
- GET /scanner/status - Scan loop state and last cycle summary
- GET /scanner/exclusions - Failure streaks and backoff per symbol
- GET /signals/cooldowns - Last approved alert per symbol

Requirements:
- Served from the scan process (`cryptoscanner --serve`), which attaches its runtime
- No authentication (local network only)
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from api.routes import ratelimit, scanner, signals
from api.state import get_runtime
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Crypto Scanner API",
    description="Status API for the rate-budgeted market scanner",
    version="1.0.0",
)

app.include_router(ratelimit.router)
app.include_router(scanner.router)
app.include_router(signals.router)

# Track API start time
_api_start_time = time.time()


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        JSON with uptime and the state of the attached scan loop.

    Raises:
        HTTPException: If no scan loop is attached.
    """
    uptime_seconds = int(time.time() - _api_start_time)
    try:
        runtime = get_runtime()
    except ConfigurationError as e:
        raise HTTPException(
            status_code=503,
            detail={
                "status": "error",
                "uptime_seconds": uptime_seconds,
                "scanner": {"configured": False, "error": str(e)},
            },
        ) from e

    return {
        "status": "ok",
        "uptime_seconds": uptime_seconds,
        "scanner": {
            "configured": True,
            "provider": runtime.config.provider,
            "running": runtime.orchestrator.is_running,
            "rate_budget": runtime.governor.snapshot().status,
        },
    }


@app.exception_handler(Exception)
async def global_exception_handler(_request, exc):
    """Global exception handler to ensure consistent error responses."""
    logger.exception(f"Unhandled API error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
