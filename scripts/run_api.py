#!/usr/bin/env python3
"""Run the scanner with its FastAPI status server.

The API reports on the scan loop running in the same process, so this starts
both (same as `cryptoscanner --serve`).

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--symbols-file PATH] [--analyzer MODULE:ATTR]

Environment:
    SCANNER_* - Required scanner settings (see core/config.py).
    DATABASE_URL - Optional. Keep scanner state in SQL instead of JSON files.

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.scanner.scheduler import main as scanner_main  # noqa: E402


def main() -> int:
    """Run the scan loop and the API server."""
    parser = argparse.ArgumentParser(description="Run the scanner status API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument("--symbols-file", help="Symbol universe file (default: SCANNER_SYMBOLS_FILE)")
    parser.add_argument("--analyzer", help="Signal analyzer as module:attr")
    args = parser.parse_args()

    print(f"Starting scanner with API on {args.host}:{args.port}")
    print("Endpoints:")
    for path in ("/health", "/ratelimit/status", "/scanner/status", "/scanner/exclusions", "/signals/cooldowns"):
        print(f"  - GET http://{args.host}:{args.port}{path}")
    print()

    argv = ["--serve", "--host", args.host, "--port", str(args.port)]
    if args.symbols_file:
        argv += ["--symbols-file", args.symbols_file]
    if args.analyzer:
        argv += ["--analyzer", args.analyzer]

    try:
        return asyncio.run(scanner_main(argv))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
