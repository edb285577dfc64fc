"""Loguru configuration: JSON lines on stdout, tagged with the request context."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from sys import stdout
from typing import Any, Optional

from loguru import logger

from prodledger.core.config import settings

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")
company_id_ctx_var: ContextVar[str] = ContextVar("company_id", default="-")

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "[{extra[request_id]}] {message} {extra}"
)


def _patch_record(record: dict[str, Any]) -> None:
    record["extra"].setdefault("request_id", request_id_ctx_var.get())
    record["extra"].setdefault("user_id", user_id_ctx_var.get())
    record["extra"].setdefault("company_id", company_id_ctx_var.get())


def setup_logging(level: Optional[str] = None) -> None:
    """Replace Loguru's default sink; JSON unless ``LOG_JSON`` is off (local runs)."""

    level = level or settings.LOG_LEVEL
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("aiomysql").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
    logger.remove()
    logger.configure(patcher=_patch_record)
    if settings.LOG_JSON:
        logger.add(stdout, level=level, enqueue=True, backtrace=False, diagnose=False, serialize=True)
    else:
        logger.add(stdout, level=level, enqueue=True, backtrace=False, diagnose=False, format=HUMAN_FORMAT)
