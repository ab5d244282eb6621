from __future__ import annotations

from slowapi import Limiter

from app.core.config import settings
from app.core.identity import client_address

limiter = Limiter(key_func=client_address, enabled=settings.rate_limit_enabled)


def rate_limit():
    """Per-address burst limit for routes that call the analysis provider."""
    if settings.rate_limit_enabled:
        return limiter.limit(settings.rate_limit)

    def decorator(func):
        return func

    return decorator
