"""
Rate limiting package for the journal gateway.

Holds the fixed-window limiter and the middleware that applies per-action
budgets scoped to identity and client address.
"""

from .fixed_window import (
    DEFAULT_POLICIES,
    FixedWindowRateLimiter,
    RateLimitDecision,
    RateLimitMiddleware,
    RateLimitPolicy,
    get_client_ip,
    make_key,
)

__all__ = [
    "DEFAULT_POLICIES",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitMiddleware",
    "RateLimitPolicy",
    "get_client_ip",
    "make_key",
]
