"""Scan cycles: exclusion tracking, orchestration and the periodic loop."""

from core.scanner.exclusions import ExclusionRegistry, ExclusionStats
from core.scanner.orchestrator import ScanOrchestrator
from core.scanner.scheduler import IntervalTicker, ScanScheduler, Ticker

__all__ = [
    "ExclusionRegistry",
    "ExclusionStats",
    "ScanOrchestrator",
    "IntervalTicker",
    "ScanScheduler",
    "Ticker",
]
