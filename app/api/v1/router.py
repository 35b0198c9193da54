# 📄 File: app/api/v1/router.py
# 🧭 Purpose (Layman Explanation):
# The traffic director that sends subscription requests and payment requests to the right
# handlers under the /api address.
# 🧪 Purpose (Technical Summary):
# API router aggregation combining the subscription management module routers; mounted by
# app.main under API_PREFIX.
# 🔗 Dependencies:
# FastAPI, app.modules.subscription_management.presentation.api.v1.*
# 🔄 Connected Modules / Calls From:
# app.main

import logging
from typing import Dict

from fastapi import APIRouter

from app.shared.config.settings import get_settings
from app.modules.subscription_management.presentation.api.v1.payments import payments_router
from app.modules.subscription_management.presentation.api.v1.subscriptions import subscriptions_router

logger = logging.getLogger(__name__)

api_v1_router = APIRouter()

api_v1_router.include_router(subscriptions_router)
api_v1_router.include_router(payments_router)


@api_v1_router.get(
    "/",
    summary="API Information",
    description="Version and the route groups this API serves",
    tags=["API Info"],
)
async def api_info() -> Dict[str, object]:
    settings = get_settings()
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "routes": {
            "subscriptions": "/api/subscriptions",
            "payments": "/api/payments",
            "health": "/health",
        },
    }
