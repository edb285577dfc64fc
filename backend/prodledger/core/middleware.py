"""Custom ASGI middleware used by the FastAPI app."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from prodledger.core.config import settings
from prodledger.core.idempotency import IDEMPOTENCY_HEADER
from prodledger.core.logging import company_id_ctx_var, request_id_ctx_var, user_id_ctx_var

MAX_REQUEST_ID_LENGTH = 64
BODY_METHODS = {"POST", "PUT", "PATCH"}


def _request_id(request: Request) -> str:
    supplied = (request.headers.get("X-Request-ID") or "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH:
        return supplied
    return uuid.uuid4().hex


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Tags every log line with the request id and emits one access log per request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = _request_id(request)
        request.state.request_id = request_id
        request_token = request_id_ctx_var.set(request_id)
        user_token = user_id_ctx_var.set("-")
        company_token = company_id_ctx_var.set("-")
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            status_code = response.status_code if response else 500
            log = logger.bind(
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                idempotency_key=request.headers.get(IDEMPOTENCY_HEADER),
            )
            if status_code >= 500:
                log.warning("request_completed")
            else:
                log.info("request_completed")
            if response is not None:
                response.headers.setdefault("X-Request-ID", request_id)
            request_id_ctx_var.reset(request_token)
            user_id_ctx_var.reset(user_token)
            company_id_ctx_var.reset(company_token)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject write requests whose declared body exceeds ``MAX_BODY_BYTES``."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method not in BODY_METHODS:
            return await call_next(request)
        content_length = request.headers.get("content-length")
        if content_length is None:
            return await call_next(request)
        try:
            declared = int(content_length)
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"success": False, "message": "Invalid Content-Length header"},
            )
        if declared > settings.MAX_BODY_BYTES:
            return JSONResponse(
                status_code=413,
                content={"success": False, "message": "Request entity too large"},
            )
        return await call_next(request)
