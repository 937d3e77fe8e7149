"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

Usage in routes:
    from fastapi import Request
    from aidconnect.core.rate_limit import limiter

    @router.post("/some-model-endpoint")
    @limiter.limit("10/minute")
    async def my_endpoint(request: Request):
        ...

Wired into the app in main.py (app.state.limiter + RateLimitExceeded handler).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Prediction misses cost two model calls each, so the prediction route is
# the main consumer of this limiter.
limiter = Limiter(key_func=get_remote_address)
