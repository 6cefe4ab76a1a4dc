"""Periodic scan loop.

Each iteration:
1. Re-reads the symbol universe
2. Runs one scan cycle
3. Hands the report to the analyzer (if any) and routes candidates through the alert gate
4. Waits on the ticker until the next iteration

The ticker is injectable so tests can drive iterations without real sleeping.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Sequence

from core.errors import ConfigurationError, CycleAlreadyRunning
from core.scanner.orchestrator import ScanOrchestrator
from core.signals.gate import AlertGate, GateResult, SignalAnalyzer
from core.types import ScanReport

if TYPE_CHECKING:
    import uvicorn

    from core.runtime import ScannerRuntime

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    async def wait(self) -> bool:
        """Wait for the next tick. Return False once the ticker is stopped."""
        ...

    def stop(self) -> None:
        ...


class IntervalTicker:
    """Fixed-interval ticker that wakes up immediately when stopped."""

    def __init__(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self._stopped = asyncio.Event()

    async def wait(self) -> bool:
        if self._stopped.is_set():
            return False
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            return True
        return False

    def stop(self) -> None:
        self._stopped.set()


class ScanScheduler:
    def __init__(
        self,
        orchestrator: ScanOrchestrator,
        universe: Callable[[], Sequence[str]],
        *,
        ticker: Ticker,
        analyzer: Optional[SignalAnalyzer] = None,
        gate: Optional[AlertGate] = None,
    ) -> None:
        if analyzer is not None and gate is None:
            raise ValueError("an analyzer needs an alert gate")
        self.orchestrator = orchestrator
        self.universe = universe
        self.ticker = ticker
        self.analyzer = analyzer
        self.gate = gate
        self._running = False
        self._iteration = 0
        self.last_gate_result: Optional[GateResult] = None

    @property
    def iterations(self) -> int:
        return self._iteration

    async def run_once(self) -> ScanReport:
        """Run one scan cycle and the alert hand-off.

        Raises:
            CycleAlreadyRunning: If a cycle is still in flight
        """
        self._iteration += 1
        logger.info(f"=== Scan iteration {self._iteration} ===")

        report = await self.orchestrator.run_scan_cycle(self.universe())

        if self.analyzer is not None and self.gate is not None:
            candidates = await self.analyzer.analyze(report)
            if candidates:
                self.last_gate_result = await self.gate.process(candidates)
                logger.info(
                    f"Alerts: {len(self.last_gate_result.delivered)} delivered, "
                    f"{len(self.last_gate_result.denied)} denied, "
                    f"{len(self.last_gate_result.delivery_failed)} undelivered, "
                    f"{len(self.last_gate_result.errors)} errors"
                )
        return report

    async def run(self, max_iterations: Optional[int] = None) -> None:
        """Scan until stopped (or `max_iterations` is reached)."""
        logger.info("Starting scan scheduler")
        self._running = True
        completed = 0

        try:
            while self._running:
                try:
                    await self.run_once()
                except CycleAlreadyRunning:
                    logger.warning("Previous scan cycle still running, skipping this tick")
                except Exception as e:
                    logger.exception(f"Scan iteration failed: {e}")

                completed += 1
                if max_iterations is not None and completed >= max_iterations:
                    logger.info(f"Reached max iterations ({max_iterations})")
                    break

                if not await self.ticker.wait():
                    break

        except asyncio.CancelledError:
            logger.info("Scan scheduler cancelled")
            raise
        finally:
            self._running = False
            logger.info("Scan scheduler stopped")

    def stop(self) -> None:
        """Stop after the current iteration; interrupts the wait between iterations."""
        self._running = False
        self.ticker.stop()


def load_analyzer(path: str) -> SignalAnalyzer:
    """Import an analyzer from `module:attr`.

    A class is instantiated with no arguments; anything else is used as is.

    Raises:
        ConfigurationError: If the path cannot be imported or is not an analyzer
    """
    import importlib

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError("analyzer", f"expected module:attr, got {path!r}")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError("analyzer", f"cannot load {path!r}: {e}") from e

    analyzer = target() if isinstance(target, type) else target
    if not hasattr(analyzer, "analyze"):
        raise ConfigurationError("analyzer", f"{path!r} has no analyze()")
    return analyzer


def build_api_server(runtime: ScannerRuntime, *, host: str, port: int) -> "uvicorn.Server":
    """Attach `runtime` to the status API and return a server for this event loop."""
    import uvicorn

    from api.main import app
    from api.state import set_runtime

    set_runtime(runtime)
    return uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the scanner from the command line."""
    import argparse

    from core.config import ScannerConfig
    from core.market_data.symbols import load_symbol_universe
    from core.runtime import build_runtime

    parser = argparse.ArgumentParser(description="Run the market scanner")
    parser.add_argument("--once", action="store_true", help="Run a single scan cycle and exit")
    parser.add_argument("--iterations", type=int, help="Max iterations (default: infinite)")
    parser.add_argument("--symbols-file", help="Symbol universe file (default: SCANNER_SYMBOLS_FILE)")
    parser.add_argument(
        "--analyzer",
        help="Signal analyzer as module:attr; its candidates go through the alert gate (default: none, no alerts)",
    )
    parser.add_argument("--serve", action="store_true", help="Serve the status API from this process")
    parser.add_argument("--host", default="127.0.0.1", help="API host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="API port (default: 8000)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = ScannerConfig.from_env()
        analyzer = load_analyzer(args.analyzer) if args.analyzer else None
    except ConfigurationError as e:
        logger.error(f"Invalid configuration, refusing to start: {e}")
        return 2

    symbols_file = args.symbols_file or config.symbols_file
    runtime = build_runtime(config)
    scheduler = ScanScheduler(
        runtime.orchestrator,
        lambda: load_symbol_universe(symbols_file),
        ticker=IntervalTicker(config.scan_interval_seconds),
        analyzer=analyzer,
        gate=runtime.gate,
    )

    server = build_api_server(runtime, host=args.host, port=args.port) if args.serve else None
    server_task = asyncio.create_task(server.serve()) if server is not None else None

    try:
        if args.once:
            report = await scheduler.run_once()
            logger.info(f"Prices: {', '.join(f'{s}={p}' for s, p in report.prices().items())}")
        else:
            await scheduler.run(max_iterations=args.iterations)
    finally:
        if server is not None and server_task is not None:
            server.should_exit = True
            await server_task
            from api.state import set_runtime

            set_runtime(None)
        await runtime.close()
    return 0


def cli() -> None:
    """Console-script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
