# 📄 File: app/main.py
#
# 🧭 Purpose (Layman Explanation):
# The control center that starts the subscription service, connects its parts together and makes
# sure everything is ready to handle requests from the marketplace apps and the admin panel.
#
# 🧪 Purpose (Technical Summary):
# FastAPI application factory and entry point: logging setup, database lifecycle, middleware
# stack, slowapi rate limiting, exception handlers rendering the error envelope, and router
# registration under API_PREFIX.
#
# 🔗 Dependencies:
# - FastAPI framework, slowapi, uvicorn
# - app.shared.config.settings
# - app.shared.infrastructure.database.connection
# - app.api.middleware, app.api.v1
#
# 🔄 Connected Modules / Calls From:
# - uvicorn server startup
# - Docker container entry point
# - Test-suite (TestClient)

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import DEFAULT_HEADERS
from app.api.middleware.authentication import AuthenticationMiddleware
from app.api.middleware.error_handling import ErrorHandlingMiddleware
from app.api.middleware.logging import RequestLoggingMiddleware
from app.api.v1.health import health_router
from app.api.v1.router import api_v1_router
from app.shared.config.settings import get_settings
from app.shared.core.exceptions import MarketplaceException, error_body
from app.shared.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.shared.infrastructure.database.connection import close_database, init_database
from app.shared.utils.logging import setup_logging
from app.modules.subscription_management.presentation.dependencies import get_payment_gateway

# Get application settings
settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Handles startup and shutdown events: logging, the database engine and the
    payment processor's HTTP session.
    """
    setup_logging()
    logger.info("💳 Subscription API starting up...")

    await init_database()
    logger.info("✅ Database connection initialized")
    logger.info("✅ Subscription API startup complete")

    try:
        yield  # Application is running
    finally:
        logger.info("🔄 Subscription API shutting down...")

        if get_payment_gateway.cache_info().currsize:
            await get_payment_gateway().client.close()
            logger.info("✅ Payment processor client closed")

        await close_database()
        logger.info("✅ Subscription API shutdown complete")


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the shared error envelope."""

    @app.exception_handler(MarketplaceException)
    async def marketplace_exception_handler(request: Request, exc: MarketplaceException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(_request_id(request)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg"),
                "type": error.get("type"),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("Request validation failed", "VALIDATION_ERROR", {"errors": errors}, _request_id(request)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), code, {"path": request.url.path}, _request_id(request)),
            headers=getattr(exc, "headers", None),
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def create_application() -> FastAPI:
    """
    Application factory function.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
        debug=settings.DEBUG,
    )

    # =========================================================================
    # MIDDLEWARE CONFIGURATION (last added runs first)
    # =========================================================================

    app.add_middleware(AuthenticationMiddleware)

    if not settings.is_testing:
        app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    # Error handling middleware (outermost, assigns the request id)
    app.add_middleware(ErrorHandlingMiddleware)

    @app.middleware("http")
    async def api_version_headers(request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(DEFAULT_HEADERS)
        return response

    # =========================================================================
    # RATE LIMITING & EXCEPTION HANDLERS
    # =========================================================================

    app.state.limiter = limiter
    register_exception_handlers(app)

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    app.include_router(health_router)
    app.include_router(api_v1_router, prefix=settings.API_PREFIX)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs_url": "/docs" if settings.DEBUG else None,
            "health_check": "/health",
            "api_base": settings.API_PREFIX,
        }

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    return app


# Create the FastAPI application
app = create_application()


def main():
    """
    Main function for running the application in development.

    Used when running ``python -m app.main`` or the console script.
    """
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD and settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
        workers=1 if settings.RELOAD else settings.WORKERS,
    )


if __name__ == "__main__":
    main()
