"""Scan cycle orchestration.

One cycle:
1. Drop symbols the exclusion registry is backing off
2. Fetch the eligible ones through the tier chain, at most `concurrency` at a time
3. Feed every outcome back into the registry
4. Summarize into a `ScanReport`

Cycles are single-flight: a call made while another cycle is in flight is
rejected with `CycleAlreadyRunning`, never queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from core.errors import CycleAlreadyRunning, PermanentSymbolFailure
from core.market_data.fetcher import TierFallbackFetcher
from core.market_data.symbols import dedupe_symbols
from core.market_data.tiers import ScanBatch
from core.scanner.exclusions import ExclusionRegistry
from core.types import FetchAttempt, ScanReport, SymbolQuote, Tier

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    def __init__(self, fetcher: TierFallbackFetcher, registry: ExclusionRegistry, *, concurrency: int) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.fetcher = fetcher
        self.registry = registry
        self.concurrency = concurrency
        self._running = False
        self._cycles = 0
        self.last_report: Optional[ScanReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycles_completed(self) -> int:
        return self._cycles

    async def run_scan_cycle(self, universe: Iterable[str]) -> ScanReport:
        """Scan `universe` once and return the report.

        Raises:
            CycleAlreadyRunning: If a previous cycle has not finished yet
        """
        # Claimed before the first await so a concurrent caller cannot slip in.
        if self._running:
            logger.warning("Scan cycle requested while another is running, rejecting")
            raise CycleAlreadyRunning()
        self._running = True

        try:
            report = await self._run(dedupe_symbols(universe))
        finally:
            self._running = False

        self._cycles += 1
        self.last_report = report
        return report

    async def _run(self, symbols: list[str]) -> ScanReport:
        started_at = datetime.now(timezone.utc)
        excluded: list[str] = []
        eligible: list[str] = []
        for symbol in symbols:
            (excluded if self.registry.is_excluded(symbol) else eligible).append(symbol)

        logger.info(f"Scan cycle started: {len(eligible)} eligible, {len(excluded)} excluded")

        calls_before = self.fetcher.calls_granted()
        batch = self.fetcher.open_batch(eligible)
        semaphore = asyncio.Semaphore(self.concurrency)

        successful: list[SymbolQuote] = []
        failed: list[str] = []
        attempts: list[FetchAttempt] = []

        try:
            results = await asyncio.gather(*(self._fetch_one(s, batch, semaphore) for s in eligible))
        finally:
            await batch.close()

        for symbol, quote, symbol_attempts in results:
            attempts.extend(symbol_attempts)
            if quote is not None:
                successful.append(quote)
            else:
                failed.append(symbol)
            self.registry.record_outcome(symbol, quote is not None)

        # The in-memory registry stays authoritative; the next cycle saves again.
        try:
            await asyncio.to_thread(self.registry.save)
        except Exception as e:
            logger.exception(f"Failed to persist exclusion registry: {e}")

        distribution: Counter[Tier] = Counter(q.tier for q in successful)
        report = ScanReport(
            successful=tuple(successful),
            failed=tuple(failed),
            excluded=tuple(excluded),
            total_calls_used=self.fetcher.calls_granted() - calls_before,
            tier_distribution={tier: distribution.get(tier, 0) for tier in Tier},
            attempts=tuple(attempts),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

        logger.info(
            f"Scan cycle finished: {len(successful)}/{report.eligible_count} ok "
            f"({report.success_rate:.1f}%), {len(failed)} failed, {report.excluded_count} excluded, "
            f"{report.total_calls_used} calls, "
            + ", ".join(f"{tier.value}={count}" for tier, count in report.tier_distribution.items())
        )
        return report

    async def _fetch_one(
        self, symbol: str, batch: ScanBatch, semaphore: asyncio.Semaphore
    ) -> tuple[str, Optional[SymbolQuote], tuple[FetchAttempt, ...]]:
        async with semaphore:
            try:
                quote = await self.fetcher.fetch(symbol, batch)
            except PermanentSymbolFailure as exc:
                logger.warning(f"{symbol}: {exc}")
                return symbol, None, exc.attempts
            except Exception as e:
                logger.exception(f"Unexpected error fetching {symbol}: {e}")
                return symbol, None, ()
        return symbol, quote, quote.attempts
