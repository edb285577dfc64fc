"""Rate limiting for ledger writes using SlowAPI."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from prodledger.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


def init_rate_limiter(app: FastAPI) -> None:
    """Attach the limiter, its middleware and the 429 renderer to the app."""

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        logger.bind(path=str(request.url.path), limit=str(exc.detail)).warning("rate_limited")
        return JSONResponse(
            status_code=429,
            content={"success": False, "message": "Too many requests", "error": "RATE_LIMITED"},
            headers={"Retry-After": "60"},
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
