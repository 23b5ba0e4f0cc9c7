"""Utility functions for megaverse reconciliation."""

from .config import find_settings_file, load_settings
from .rate_limiter import RequestRateLimiter
from .retry import (RetryConfig, RetryPolicy, RetryResult, RetryState,
                    compute_backoff)

__all__ = [
    "find_settings_file",
    "load_settings",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
    "RetryState",
    "compute_backoff",
    "RequestRateLimiter",
]
