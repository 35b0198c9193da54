# 📄 File: app/api/middleware/error_handling.py
# 🧭 Purpose (Layman Explanation):
# Gives every request a tracking number and, if something breaks that nobody expected,
# answers with a tidy error message instead of a crash page.
# 🧪 Purpose (Technical Summary):
# Outermost middleware: assigns (or propagates) X-Request-ID, stores it in request.state and the
# logging context, and converts exceptions that escaped the FastAPI exception handlers into the
# standard error envelope. Domain exceptions are rendered by the handlers registered in app.main.
# 🔗 Dependencies:
# starlette BaseHTTPMiddleware, app.shared.core.exceptions, app.shared.utils.logging
# 🔄 Connected Modules / Calls From:
# app.main (middleware registration)

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.shared.config.settings import get_settings
from app.shared.core.exceptions import MarketplaceException, error_body
from app.shared.utils.logging import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Request correlation and last-resort error handling

    Anything reaching this middleware as an exception was not handled by the
    registered exception handlers, so it is logged with its traceback and
    answered with a 500 (details only in debug mode).
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.settings = get_settings()

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except MarketplaceException as exc:
            # Raised outside a route (e.g. in a dependency teardown)
            logger.warning(f"{exc.error_code} escaped handlers on {request.url.path}: {exc.message}")
            response = JSONResponse(status_code=exc.status_code, content=exc.to_dict(request_id))
        except Exception as exc:
            logger.error(
                f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
                exc_info=True,
            )
            details = {"error_type": type(exc).__name__} if self.settings.DEBUG else {}
            response = JSONResponse(
                status_code=500,
                content=error_body("An internal server error occurred", "INTERNAL_SERVER_ERROR", details, request_id),
            )
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{time.perf_counter() - start_time:.3f}s"
        return response
