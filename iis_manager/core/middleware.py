"""CORS, request-id, and logging middleware."""

import re
import time
import uuid
import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from iis_manager.core.config import settings

logger = logging.getLogger("iis_manager")

REQUEST_ID_HEADER = "X-Request-Id"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def incoming_request_id(value: Optional[str]) -> Optional[str]:
    """Accept a caller-supplied request id only if it is short and plain."""
    if value and _REQUEST_ID_PATTERN.match(value):
        return value
    return None


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each call with a request id so error bodies and log lines can be matched up.

    A dashboard that sends its own ``X-Request-Id`` keeps it; otherwise a new
    one is minted.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = incoming_request_id(request.headers.get(REQUEST_ID_HEADER)) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)

        client = request.client.host if request.client else "-"
        logger.info(
            "[%s] %s %s %s -> %s in %sms",
            request_id,
            client,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # Credentials cannot be combined with a wildcard origin
    allow_all = "*" in settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.CORS_ORIGINS,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.add_middleware(RequestIdMiddleware)
