"""
Correlation ID middleware — CaseTrack
=====================================
Every request gets an X-Correlation-ID (taken from the client or freshly
generated). The id is stored on ``request.state``, pushed into the logging
context for the duration of the call, and echoed back in the response.

X-Tab-ID is echoed as well when the client sends one.
"""
from __future__ import annotations

import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from casetrack.core.logger import correlation_id_var

logger = logging.getLogger(__name__)


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        tab_id = request.headers.get("X-Tab-ID", "")

        request.state.correlation_id = correlation_id
        request.state.tab_id = tab_id
        token = correlation_id_var.set(correlation_id)

        try:
            logger.info(
                "request",
                extra={
                    "correlation_id": correlation_id,
                    "tab_id": tab_id or None,
                    "method": request.method,
                    "path": request.url.path,
                },
            )
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        response.headers["X-Correlation-ID"] = correlation_id
        if tab_id:
            response.headers["X-Tab-ID"] = tab_id

        return response
