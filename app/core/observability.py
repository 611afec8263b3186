from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SATimeoutError
from starlette.responses import Response

from app.core.clock import utc_now
from app.services.errors import DomainError

_APP_START_MONOTONIC = time.monotonic()

_SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "2000"))

_QUIET_PATHS = {"/health", "/healthz"}


def _logger_for(request: Request) -> logging.Logger:
    return getattr(request.app.state, "logger", None) or logging.getLogger("vault")


def _request_id(request: Request) -> str:
    return (
        getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or str(uuid.uuid4())
    )


def _pool_status() -> str | None:
    try:
        from app.database import engine

        return engine.pool.status()
    except Exception:
        return None


def uptime_seconds() -> float:
    return max(0.0, time.monotonic() - _APP_START_MONOTONIC)


def utc_now_iso() -> str:
    return utc_now().replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


def _error_body(request_id: str, detail: str, code: str, kind: str) -> dict:
    return {"detail": detail, "code": code, "kind": kind, "request_id": request_id}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map service-layer failures to their HTTP status with a stable error code."""

    request_id = _request_id(request)
    _logger_for(request).info(
        "domain_error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "code": exc.code.value,
            "kind": exc.kind,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request_id, exc.message, exc.code.value, exc.kind),
        headers={"X-Request-ID": request_id},
    )


def _cors_headers(request: Request) -> dict:
    # Error responses built outside CORSMiddleware still need the origin echoed.
    origin = request.headers.get("origin")
    if not origin:
        return {}
    from app.config import settings

    allowed = set(settings.cors_origins or [])
    if origin not in allowed and "*" not in allowed:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the traceback, answer with an opaque 500."""

    request_id = _request_id(request)
    _logger_for(request).exception(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(
            request_id, "The vault could not complete this request.", "INTERNAL_SERVER_ERROR", "internal"
        ),
        headers={"X-Request-ID": request_id, **_cors_headers(request)},
    )


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Tag every request with an X-Request-ID and log its outcome and duration."""

    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    logger = _logger_for(request)
    start = time.perf_counter()

    def _elapsed_ms() -> float:
        return round((time.perf_counter() - start) * 1000.0, 2)

    try:
        response: Response = await call_next(request)
    except SATimeoutError as exc:
        logger.error(
            "db_pool_timeout",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "duration_ms": _elapsed_ms(),
                "pool_status": _pool_status(),
                "error": str(exc),
            },
        )
        raise

    duration_ms = _elapsed_ms()
    quiet = any(request.url.path.endswith(p) for p in _QUIET_PATHS)
    if duration_ms >= _SLOW_REQUEST_MS:
        logger.warning(
            "slow_request",
            extra={"request_id": request_id, "path": request.url.path, "duration_ms": duration_ms},
        )
    elif not quiet:
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

    response.headers.setdefault("X-Request-ID", request_id)
    return response
