"""Core rate limit module."""

from core.ratelimit.governor import AcquireResult, RateBudgetGovernor, RateWindow

__all__ = ["AcquireResult", "RateBudgetGovernor", "RateWindow"]
