"""FastAPI middleware that logs unhandled exceptions with request context.

Domain errors are turned into responses by the exception handlers in
``loanflow.main``; anything that reaches this middleware is a bug or an
infrastructure failure and becomes a generic 500.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import HTTPException, Request, Response
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from loanflow.auth_utils import decode_token

logger = logging.getLogger("loanflow.middleware")


def _actor_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        return decode_token(auth_header[7:]).get("sub")
    except JWTError:
        return None


class ErrorCaptureMiddleware(BaseHTTPMiddleware):
    """Catches unhandled exceptions, logs them, and returns 500."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.time()
        try:
            response = await call_next(request)
        except HTTPException:
            raise
        except Exception:
            elapsed_ms = round((time.time() - start) * 1000, 2)
            logger.exception(
                "Unhandled exception on %s %s (actor=%s ip=%s, %sms)",
                request.method,
                request.url.path,
                _actor_from_request(request),
                request.client.host if request.client else None,
                elapsed_ms,
            )
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error"},
            )

        if response.status_code >= 500:
            logger.error(
                "HTTP %s on %s %s", response.status_code, request.method, request.url.path
            )
        return response
