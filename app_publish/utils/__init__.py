"""Utility modules for app_publish."""

from .rate_limit import DEFAULT_RATE_LIMITS, RateLimiter, create_rate_limiter

__all__ = ["DEFAULT_RATE_LIMITS", "RateLimiter", "create_rate_limiter"]
