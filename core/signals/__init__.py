"""Alert admission: cooldown arbitration and delivery."""

from core.signals.arbiter import APPROVED, WITHIN_COOLDOWN, Permission, SignalCooldownArbiter
from core.signals.gate import AlertGate, GateResult, LoggingDelivery, SignalAnalyzer, SignalDelivery

__all__ = [
    "APPROVED",
    "WITHIN_COOLDOWN",
    "Permission",
    "SignalCooldownArbiter",
    "AlertGate",
    "GateResult",
    "LoggingDelivery",
    "SignalAnalyzer",
    "SignalDelivery",
]
