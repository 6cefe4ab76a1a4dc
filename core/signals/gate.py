"""Boundary between analysis, the cooldown arbiter and alert delivery."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from core.signals.arbiter import Permission, SignalCooldownArbiter
from core.types import CandidateSignal, ScanReport

logger = logging.getLogger(__name__)


class SignalAnalyzer(Protocol):
    """Turns the prices of a scan cycle into candidate alerts."""

    async def analyze(self, report: ScanReport) -> Sequence[CandidateSignal]:
        ...


class SignalDelivery(Protocol):
    async def deliver(self, signal: CandidateSignal) -> bool:
        """Send an approved alert; return False (or raise) on failure."""
        ...


class LoggingDelivery:
    """Delivery channel that only writes approved alerts to the log."""

    async def deliver(self, signal: CandidateSignal) -> bool:
        details: Mapping[str, object] = signal.payload
        extra = " ".join(f"{k}={v}" for k, v in details.items())
        logger.info(f"ALERT {signal.symbol} {signal.direction.value} {extra}".rstrip())
        return True


@dataclass
class GateResult:
    approved: list[CandidateSignal] = field(default_factory=list)
    denied: list[tuple[CandidateSignal, Permission]] = field(default_factory=list)
    delivered: list[CandidateSignal] = field(default_factory=list)
    delivery_failed: list[CandidateSignal] = field(default_factory=list)
    errors: list[CandidateSignal] = field(default_factory=list)  # arbitration raised


class AlertGate:
    """Send candidates through the arbiter and deliver the approved ones.

    Denied candidates are dropped, not retried. A failed delivery keeps its
    approval, so the symbol stays in cooldown.
    """

    def __init__(self, arbiter: SignalCooldownArbiter, delivery: SignalDelivery) -> None:
        self.arbiter = arbiter
        self.delivery = delivery

    async def process(self, candidates: Sequence[CandidateSignal]) -> GateResult:
        result = GateResult()

        for candidate in candidates:
            try:
                permission = await asyncio.to_thread(self.arbiter.request, candidate)
            except Exception as e:
                logger.exception(f"Arbitration failed for {candidate.symbol}: {e}")
                result.errors.append(candidate)
                continue

            if not permission.approved:
                last = permission.conflicting
                logger.warning(
                    f"Dropped {candidate.direction.value} alert for {candidate.symbol}: {permission.reason} "
                    f"(last {last.last_direction.value if last else '?'}, {permission.retry_after:.0f}s left)"
                )
                result.denied.append((candidate, permission))
                continue

            result.approved.append(candidate)
            try:
                ok = await self.delivery.deliver(candidate)
            except Exception as e:
                logger.error(f"Delivery failed for {candidate.symbol}: {e}")
                ok = False

            if ok:
                result.delivered.append(candidate)
            else:
                logger.warning(f"Alert for {candidate.symbol} not delivered, cooldown stays committed")
                result.delivery_failed.append(candidate)

        return result
