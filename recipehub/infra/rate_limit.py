"""Per-client rate limiting.

Process-local (slowapi in-memory storage). Limits are slowapi strings such as
"100/15minutes". Endpoints decorated with `limiter.limit(...)` must accept
`request: Request` and `response: Response` so the X-RateLimit headers can be
attached.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..settings import settings

logger = logging.getLogger("recipehub.ratelimit")


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request) or "unknown"


def build_limiter(default_limit: str | None = None) -> Limiter:
    return Limiter(
        key_func=client_identifier,
        default_limits=[default_limit or settings.rate_limit_default],
        headers_enabled=True,
        storage_uri="memory://",
    )


limiter = build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {client_identifier(request)} on {request.url.path}: {exc.detail}")
    response = JSONResponse(
        status_code=429,
        content={
            "status": "error",
            "message": "Too many requests, please try again later.",
            "errors": [f"Rate limit exceeded: {exc.detail}"],
        },
    )
    app_limiter = getattr(request.app.state, "limiter", None)
    view_limit = getattr(request.state, "view_rate_limit", None)
    if app_limiter is not None and view_limit is not None:
        response = app_limiter._inject_headers(response, view_limit)
    return response
