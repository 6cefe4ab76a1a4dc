"""Scanner runtime shared by the API routes.

The API never builds a runtime of its own: it reports on the one the scan loop
installs with `set_runtime` (see `core.scanner.scheduler` `--serve`).
"""

from __future__ import annotations

import logging
import threading

from fastapi import HTTPException

from core.errors import ConfigurationError
from core.runtime import ScannerRuntime

logger = logging.getLogger(__name__)

# Runtime of the scan loop serving this process
_runtime: ScannerRuntime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> ScannerRuntime:
    """Get the runtime of the scan loop.

    Raises:
        ConfigurationError: If no scan loop is attached to this process
    """
    with _runtime_lock:
        if _runtime is None:
            raise ConfigurationError("runtime", "no scan loop attached; start the scanner with --serve")
        return _runtime


def set_runtime(runtime: ScannerRuntime | None) -> None:
    """Attach the scan loop's runtime (or detach with None)."""
    global _runtime
    with _runtime_lock:
        _runtime = runtime
    if runtime is not None:
        logger.info("Scanner runtime attached to API")


def require_runtime() -> ScannerRuntime:
    """`get_runtime` for route handlers: a missing runtime becomes a 503."""
    try:
        return get_runtime()
    except ConfigurationError as e:
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "error": "scanner_not_configured", "message": str(e)},
        ) from e
