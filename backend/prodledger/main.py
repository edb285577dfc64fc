"""Application entry point for the production ledger API service."""

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.api.routes.production_groups import router as production_groups_router
from prodledger.api.routes.production_schedule import router as production_schedule_router
from prodledger.core.config import settings
from prodledger.core.db import get_session
from prodledger.core.errors import install_error_handlers
from prodledger.core.idempotency import IDEMPOTENCY_HEADER, REPLAY_HEADER
from prodledger.core.logging import setup_logging
from prodledger.core.middleware import BodySizeLimitMiddleware, RequestContextLogMiddleware
from prodledger.core.rate_limit import init_rate_limiter

setup_logging()

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

install_error_handlers(app)
init_rate_limiter(app)

app.add_middleware(RequestContextLogMiddleware)


def _cors_origins() -> list[str]:
    if settings.ENV == "prod":
        if not settings.CORS_ALLOWED_ORIGINS:
            raise RuntimeError("CORS_ALLOWED_ORIGINS must be configured for prod")
        return settings.CORS_ALLOWED_ORIGINS
    return settings.CORS_ALLOWED_ORIGINS or ["http://localhost:5173"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        IDEMPOTENCY_HEADER,
        "X-Request-ID",
    ],
    expose_headers=["X-Request-ID", REPLAY_HEADER, "Retry-After"],
)

app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.get("/api/healthz", tags=["system"], summary="Liveness probe")
def healthz() -> dict[str, str]:
    """Simple liveness probe that load balancers and monitors can call."""

    return {"status": "ok"}


@app.get("/api/readyz", tags=["system"], summary="Readiness probe")
async def readyz(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
        return {"ready": True}
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="Database not reachable")


app.include_router(production_schedule_router, prefix="/api")
app.include_router(production_groups_router, prefix="/api")
