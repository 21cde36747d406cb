"""Usage domain - free-tier query limits."""

from .schemas import CallerIdentity, UsageCheck
from .service import UsageLimiter, month_bounds

__all__ = [
    "UsageLimiter",
    "CallerIdentity",
    "UsageCheck",
    "month_bounds",
]
