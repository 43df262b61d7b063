"""Rate limiting for the manual refresh endpoint using SlowAPI.

A manual refresh pulls a year of data from Sprout and spends the shared
upstream quota, so POST /api/refresh is throttled per client
(``settings.refresh_rate_limit``). Behind the dashboard's reverse proxy every
request arrives from the proxy's address, so the client is taken from
X-Forwarded-For when ``settings.trust_forwarded_for`` is on.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config import get_settings

settings = get_settings()


def refresh_client_key(request: Request) -> str:
    if settings.trust_forwarded_for:
        forwarded_for = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
        if forwarded_for:
            return forwarded_for
    return get_remote_address(request)


limiter = Limiter(key_func=refresh_client_key)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "detail": "A refresh was requested recently. Cached data is still being served.",
            "limit": exc.detail,
        },
    )
