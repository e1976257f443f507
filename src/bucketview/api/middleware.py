"""HTTP middleware for the bucketview server."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from bucketview.errors import ErrorResponse
from bucketview.logging_setup import bind_request

logger = logging.getLogger("bucketview")

CORS_ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Read or generate X-Correlation-ID, bind it to the request for logging, echo it back."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        cid = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        bind_request(cid, request.method, request.url.path)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


def cors_headers(origin: str | None, allowed_origins: list[str]) -> dict[str, str]:
    """Credentialed CORS headers for one request.

    A listed origin (or any origin when ``*`` is listed) is echoed back;
    anything else gets the first configured origin, which the browser will
    then refuse.
    """
    if origin and (origin in allowed_origins or "*" in allowed_origins):
        allow_origin = origin
    else:
        allow_origin = allowed_origins[0] if allowed_origins else ""
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
        "Vary": "Origin",
    }


class CorsMiddleware(BaseHTTPMiddleware):
    """Stamp CORS headers on every response, including errors and preflights.

    Unhandled exceptions are turned into the INTERNAL_ERROR envelope here so
    that 500s still carry CORS headers and the browser can read them.
    """

    def __init__(self, app: Any, allowed_origins: list[str] | None = None) -> None:
        super().__init__(app)
        self._allowed = list(allowed_origins or [])

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        headers = cors_headers(request.headers.get("Origin"), self._allowed)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
            response = JSONResponse(
                status_code=500, content=ErrorResponse.internal(f"Error: {exc}").model_dump()
            )
        for name, value in headers.items():
            response.headers[name] = value
        return response
