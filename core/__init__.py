"""Core scanner building blocks.

- config: validated runtime settings
- ratelimit: shared provider-call budget
- market_data: providers, fetch tiers and the fallback fetcher
- scanner: exclusion registry, scan cycles and the periodic loop
- signals: alert cooldown arbitration and delivery
- persistence: durable-store interfaces
- storage: in-memory, JSON and SQL store implementations
- runtime: wires everything from a `ScannerConfig`
"""
