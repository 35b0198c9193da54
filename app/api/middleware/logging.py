# 📄 File: app/api/middleware/logging.py
# 🧭 Purpose (Layman Explanation):
# Keeps a diary of every request to the subscription service: what was asked for, who asked,
# how long it took and how it ended.
# 🧪 Purpose (Technical Summary):
# Request logging middleware emitting one structured record per request through log_request,
# with the caller's user id and a filtered view of the request headers at debug level.
# 🔗 Dependencies:
# starlette BaseHTTPMiddleware, app.shared.utils.logging
# 🔄 Connected Modules / Calls From:
# app.main (middleware registration)

import logging
import time
from typing import Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.shared.utils.logging import log_request
from . import get_middleware_config, should_exclude_path

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Structured request/response logging with sensitive header filtering."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.sensitive_headers = set(get_middleware_config("logging").get("sensitive_headers", []))

    async def dispatch(self, request: Request, call_next) -> Response:
        if should_exclude_path("logging", request.url.path):
            return await call_next(request)

        start_time = time.perf_counter()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Incoming {request.method} {request.url.path}",
                extra={"headers": self._filter_sensitive_headers(dict(request.headers))},
            )

        response = await call_next(request)

        log_request(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start_time) * 1000,
        )
        return response

    def _filter_sensitive_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {
            key: ("[REDACTED]" if key.lower() in self.sensitive_headers else value)
            for key, value in headers.items()
        }
