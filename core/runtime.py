"""Composition root: build every scanner component from a `ScannerConfig`."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from core.config import ScannerConfig
from core.market_data import HttpProvider, TierFallbackFetcher, build_default_chain, get_provider
from core.persistence.interfaces import CooldownStore, ExclusionStore
from core.ratelimit.governor import RateBudgetGovernor
from core.scanner.exclusions import ExclusionRegistry
from core.scanner.orchestrator import ScanOrchestrator
from core.signals.arbiter import SignalCooldownArbiter
from core.signals.gate import AlertGate, LoggingDelivery, SignalDelivery
from core.storage.json_store import JsonCooldownStore, JsonExclusionStore
from core.storage.postgres import PostgresConfig, PostgresStateStores

logger = logging.getLogger(__name__)


@dataclass
class ScannerRuntime:
    config: ScannerConfig
    governor: RateBudgetGovernor
    provider: HttpProvider
    fetcher: TierFallbackFetcher
    registry: ExclusionRegistry
    arbiter: SignalCooldownArbiter
    orchestrator: ScanOrchestrator
    gate: AlertGate
    sql_stores: Optional[PostgresStateStores] = None

    async def close(self) -> None:
        await self.provider.close()
        if self.sql_stores is not None:
            self.sql_stores.dispose()


def build_stores(config: ScannerConfig) -> tuple[ExclusionStore, CooldownStore, Optional[PostgresStateStores]]:
    """SQL stores when DATABASE_URL is configured, JSON files under `state_dir` otherwise."""
    if config.database_url:
        stores = PostgresStateStores(config=PostgresConfig(database_url=config.database_url))
        logger.info("Using SQL state store")
        return stores.exclusions, stores.cooldowns, stores

    state_dir = Path(config.state_dir)
    logger.info(f"Using JSON state store in {state_dir}")
    return (
        JsonExclusionStore(state_dir / "exclusions.json"),
        JsonCooldownStore(state_dir / "cooldowns.json"),
        None,
    )


def build_runtime(
    config: ScannerConfig,
    *,
    provider: Optional[HttpProvider] = None,
    delivery: Optional[SignalDelivery] = None,
) -> ScannerRuntime:
    governor = RateBudgetGovernor(
        budget=config.rate_budget,
        window_seconds=config.rate_window_seconds,
        penalty_seconds=config.penalty_seconds,
        name=config.provider,
    )
    if provider is None:
        provider = get_provider(config.provider, api_key=config.api_key, timeout_seconds=config.tier_timeout_seconds)

    fetcher = TierFallbackFetcher(
        build_default_chain(provider, governor, batch_size=config.bulk_batch_size),
        timeout_seconds=config.tier_timeout_seconds,
    )

    exclusion_store, cooldown_store, sql_stores = build_stores(config)
    registry = ExclusionRegistry(
        threshold=config.exclusion_threshold,
        backoff_schedule=config.backoff_schedule,
        store=exclusion_store,
    )
    arbiter = SignalCooldownArbiter(cooldown_seconds=config.cooldown_seconds, store=cooldown_store)

    return ScannerRuntime(
        config=config,
        governor=governor,
        provider=provider,
        fetcher=fetcher,
        registry=registry,
        arbiter=arbiter,
        orchestrator=ScanOrchestrator(fetcher, registry, concurrency=config.concurrency),
        gate=AlertGate(arbiter, delivery or LoggingDelivery()),
        sql_stores=sql_stores,
    )
