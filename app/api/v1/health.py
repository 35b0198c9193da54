# 📄 File: app/api/v1/health.py
# 🧭 Purpose (Layman Explanation):
# Checkup endpoints that tell the load balancer and the on-call engineer whether the subscription
# service is up and whether it can reach its database.
# 🧪 Purpose (Technical Summary):
# Liveness, readiness and detailed health endpoints reporting database connectivity, payment
# and email provider configuration and process resource usage.
# 🔗 Dependencies:
# FastAPI, psutil, app.shared.infrastructure.database.connection
# 🔄 Connected Modules / Calls From:
# app.main (mounted without prefix), container orchestrators, monitoring

import logging
import platform
from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from app.shared.config.settings import get_settings
from app.shared.infrastructure.database.connection import database_health_check

logger = logging.getLogger(__name__)

health_router = APIRouter()

# Application start time for uptime calculation
_app_start_time = datetime.now(timezone.utc)


@health_router.get(
    "/health",
    summary="Basic Health Check",
    description="Basic health check endpoint for load balancers and monitoring",
    tags=["Health Check"],
)
async def health_check() -> JSONResponse:
    """Simple OK status for quick health verification."""
    settings = get_settings()
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "marketplace-subscriptions",
            "version": settings.APP_VERSION,
        },
    )


@health_router.get("/health/live", summary="Liveness Check", tags=["Health Check"])
async def liveness_check() -> Response:
    return Response(status_code=200)


@health_router.get(
    "/health/ready",
    summary="Readiness Check",
    description="Ready when the subscription database answers",
    tags=["Health Check"],
)
async def readiness_check() -> JSONResponse:
    database = await database_health_check()
    ready = database["status"] == "healthy"
    if not ready:
        logger.warning(f"Readiness check failing: database {database}")
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "not_ready", "database": database},
    )


@health_router.get(
    "/health/detailed",
    summary="Detailed Health Check",
    description="Database, provider configuration and process metrics",
    tags=["Health Check"],
)
async def detailed_health_check() -> JSONResponse:
    """
    Comprehensive health check

    Checks:
    - Database connectivity and latency
    - Whether Stripe and SendGrid credentials are configured
    - Process memory and CPU usage
    """
    settings = get_settings()
    database = await database_health_check()
    overall = "healthy" if database["status"] == "healthy" else "degraded"

    return JSONResponse(
        status_code=200 if overall == "healthy" else 503,
        content={
            "status": overall,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "version": settings.APP_VERSION,
            "components": {
                "database": database,
                "payment_processor": {"configured": bool(settings.STRIPE_SECRET_KEY)},
                "email": {"configured": bool(settings.SENDGRID_API_KEY)},
            },
            "system": _get_process_metrics(),
        },
    )


def _get_process_metrics() -> Dict[str, Any]:
    process = psutil.Process()
    memory = process.memory_info()
    return {
        "python_version": platform.python_version(),
        "uptime_seconds": round((datetime.now(timezone.utc) - _app_start_time).total_seconds()),
        "memory_rss_mb": round(memory.rss / (1024 * 1024), 2),
        "cpu_percent": process.cpu_percent(interval=None),
        "threads": process.num_threads(),
    }
