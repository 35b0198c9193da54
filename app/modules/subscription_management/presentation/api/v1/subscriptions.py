# 📄 File: app/modules/subscription_management/presentation/api/v1/subscriptions.py
# 🧭 Purpose (Layman Explanation):
# The web endpoints contractors use to see the plans, price them, start a trial, subscribe,
# move up or down a tier, cancel and look at what they have paid.
#
# 🧪 Purpose (Technical Summary):
# FastAPI router for /api/subscriptions. Endpoints translate requests into commands/queries,
# run the handlers and wrap DTOs in ApiResponse. Domain exceptions propagate to the global
# handlers; state-changing routes are rate limited per user with slowapi.
#
# 🔗 Dependencies:
# - FastAPI router, slowapi limiter (app.shared.core.rate_limiter)
# - application handlers, commands and queries
# - presentation dependencies and schemas
#
# 🔄 Connected Modules / Calls From:
# - app.api.v1.router (mounted under /api)

"""
Subscriptions API Endpoints

Public:
- GET /tiers, GET /pricing, POST /pricing/calculate

Authenticated:
- GET / (list), POST / (subscribe), GET /current, GET /features
- POST /promotional/validate, POST /trial/start, GET /trial/status
- POST /{id}/upgrade, POST /{id}/downgrade, POST /{id}/cancel
- GET /billing-history, GET /{id}/history

Admin:
- GET /promotional, POST /promotional
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from app.shared.core.dependencies import CurrentUser, get_current_admin_user, get_current_user
from app.shared.core.rate_limiter import limiter, mutation_limit
from app.modules.subscription_management.application.commands.payment_commands import (
    CreatePromotionalCodeCommand,
)
from app.modules.subscription_management.application.commands.subscription_commands import (
    CancelSubscriptionCommand,
    ChangeTierCommand,
    StartTrialCommand,
    SubscribeCommand,
    TierChangeDirection,
)
from app.modules.subscription_management.application.dto.payment_dto import PaymentDTO
from app.modules.subscription_management.application.dto.subscription_dto import (
    CurrentSubscriptionDTO,
    FeatureAccessDTO,
    PricingDTO,
    PromotionalCodeDTO,
    PromoValidationDTO,
    SubscribeResultDTO,
    SubscriptionDTO,
    SubscriptionEventDTO,
    SubscriptionListDTO,
    TierChangeDTO,
    TierDTO,
    TrialStatusDTO,
)
from app.modules.subscription_management.application.handlers.command_handlers import (
    CancelSubscriptionCommandHandler,
    ChangeTierCommandHandler,
    CreatePromotionalCodeCommandHandler,
    StartTrialCommandHandler,
    SubscribeCommandHandler,
)
from app.modules.subscription_management.application.handlers.query_handlers import (
    CalculatePriceQueryHandler,
    GetBillingHistoryQueryHandler,
    GetCurrentSubscriptionQueryHandler,
    GetFeaturesQueryHandler,
    GetSubscriptionHistoryQueryHandler,
    GetTrialStatusQueryHandler,
    ListPromotionalCodesQueryHandler,
    ListSubscriptionsQueryHandler,
    ValidatePromotionalCodeQueryHandler,
    list_tier_dtos,
    price_table_dtos,
)
from app.modules.subscription_management.application.queries.subscription_queries import (
    CalculatePriceQuery,
    GetBillingHistoryQuery,
    GetCurrentSubscriptionQuery,
    GetFeaturesQuery,
    GetSubscriptionHistoryQuery,
    GetTrialStatusQuery,
    ListSubscriptionsQuery,
    ValidatePromotionalCodeQuery,
)
from app.modules.subscription_management.domain.models.tier import SubscriptionTier
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.services.pricing_service import PricingService
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (
    SubscriptionLifecycleService,
)
from app.modules.subscription_management.presentation.dependencies import (
    get_payment_repository,
    get_pricing_service,
    get_promotional_code_service,
    get_subscription_service,
)
from app.modules.subscription_management.presentation.schemas.subscription_schemas import (
    ApiResponse,
    CancelSubscriptionRequest,
    CreatePromotionalCodeRequest,
    PricingRequest,
    PromotionalCodeValidateRequest,
    StartTrialRequest,
    SubscribeRequest,
    TierChangeRequest,
)

logger = logging.getLogger(__name__)

subscriptions_router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


# =========================================================================
# CATALOG & PRICING (public)
# =========================================================================

@subscriptions_router.get(
    "/tiers",
    response_model=ApiResponse[List[TierDTO]],
    summary="List subscription tiers",
)
async def list_tiers() -> ApiResponse[List[TierDTO]]:
    return ApiResponse(data=list_tier_dtos())


@subscriptions_router.get(
    "/pricing",
    response_model=ApiResponse[List[PricingDTO]],
    summary="Price table for every tier and billing cycle",
)
async def get_price_table() -> ApiResponse[List[PricingDTO]]:
    return ApiResponse(data=price_table_dtos())


@subscriptions_router.post(
    "/pricing/calculate",
    response_model=ApiResponse[PricingDTO],
    summary="Price a tier and cycle, optionally with a promotional code",
    description="An invalid promotional code gives no discount and promotional_code_valid=false.",
)
async def calculate_price(
    body: PricingRequest,
    pricing_service: PricingService = Depends(get_pricing_service),
) -> ApiResponse[PricingDTO]:
    pricing = await CalculatePriceQueryHandler(pricing_service).handle(
        CalculatePriceQuery(**body.model_dump())
    )
    return ApiResponse(data=pricing)


# =========================================================================
# PROMOTIONAL CODES
# =========================================================================

@subscriptions_router.post(
    "/promotional/validate",
    response_model=ApiResponse[PromoValidationDTO],
    summary="Check a promotional code against a tier",
)
async def validate_promotional_code(
    body: PromotionalCodeValidateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    promotional_code_service: PromotionalCodeService = Depends(get_promotional_code_service),
) -> ApiResponse[PromoValidationDTO]:
    validation = await ValidatePromotionalCodeQueryHandler(promotional_code_service).handle(
        ValidatePromotionalCodeQuery(code=body.code, tier=body.tier)
    )
    return ApiResponse(data=validation)


@subscriptions_router.get(
    "/promotional",
    response_model=ApiResponse[List[PromotionalCodeDTO]],
    summary="List promotional codes (admin only)",
)
async def list_promotional_codes(
    current_admin: CurrentUser = Depends(get_current_admin_user),
    promotional_code_service: PromotionalCodeService = Depends(get_promotional_code_service),
) -> ApiResponse[List[PromotionalCodeDTO]]:
    codes = await ListPromotionalCodesQueryHandler(promotional_code_service).handle()
    return ApiResponse(data=codes)


@subscriptions_router.post(
    "/promotional",
    response_model=ApiResponse[PromotionalCodeDTO],
    status_code=status.HTTP_201_CREATED,
    summary="Create a promotional code (admin only)",
)
async def create_promotional_code(
    body: CreatePromotionalCodeRequest,
    current_admin: CurrentUser = Depends(get_current_admin_user),
    promotional_code_service: PromotionalCodeService = Depends(get_promotional_code_service),
) -> ApiResponse[PromotionalCodeDTO]:
    promo = await CreatePromotionalCodeCommandHandler(promotional_code_service).handle(
        CreatePromotionalCodeCommand(**body.model_dump())
    )
    logger.info(f"Promotional code {promo.code} created by admin {current_admin.user_id}")
    return ApiResponse(message="Promotional code created", data=promo)


# =========================================================================
# SUBSCRIPTIONS
# =========================================================================

@subscriptions_router.get(
    "",
    response_model=ApiResponse[SubscriptionListDTO],
    summary="List my subscriptions",
)
async def list_subscriptions(
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[SubscriptionListDTO]:
    result = await ListSubscriptionsQueryHandler(subscription_service).handle(
        ListSubscriptionsQuery(user_id=current_user.user_id)
    )
    return ApiResponse(data=result)


@subscriptions_router.post(
    "",
    response_model=ApiResponse[SubscribeResultDTO],
    status_code=status.HTTP_201_CREATED,
    summary="Subscribe to a paid tier",
    responses={
        400: {"description": "Already subscribed, essential tier or unusable promotional code"},
        402: {"description": "Card declined"},
    },
)
@limiter.limit(mutation_limit)
async def subscribe(
    request: Request,
    body: SubscribeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[SubscribeResultDTO]:
    result = await SubscribeCommandHandler(subscription_service).handle(SubscribeCommand(
        user_id=current_user.user_id,
        email=current_user.email,
        **body.model_dump(),
    ))
    return ApiResponse(message="Subscription activated", data=result)


@subscriptions_router.get(
    "/current",
    response_model=ApiResponse[CurrentSubscriptionDTO],
    summary="My current subscription and effective tier",
)
async def get_current_subscription(
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[CurrentSubscriptionDTO]:
    result = await GetCurrentSubscriptionQueryHandler(subscription_service).handle(
        GetCurrentSubscriptionQuery(user_id=current_user.user_id)
    )
    return ApiResponse(data=result)


@subscriptions_router.get(
    "/features",
    response_model=ApiResponse[FeatureAccessDTO],
    summary="Features and limits of my tier, or of another tier",
)
async def get_features(
    tier: Optional[SubscriptionTier] = Query(default=None, description="Look up a specific tier"),
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[FeatureAccessDTO]:
    result = await GetFeaturesQueryHandler(subscription_service).handle(
        GetFeaturesQuery(user_id=current_user.user_id, tier=tier)
    )
    return ApiResponse(data=result)


@subscriptions_router.get(
    "/billing-history",
    response_model=ApiResponse[List[PaymentDTO]],
    summary="My payments, newest first",
)
async def get_billing_history(
    limit: int = Query(default=50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    payment_repository: PaymentRepository = Depends(get_payment_repository),
) -> ApiResponse[List[PaymentDTO]]:
    payments = await GetBillingHistoryQueryHandler(payment_repository).handle(
        GetBillingHistoryQuery(user_id=current_user.user_id, limit=limit)
    )
    return ApiResponse(data=payments)


@subscriptions_router.get(
    "/{subscription_id}/history",
    response_model=ApiResponse[List[SubscriptionEventDTO]],
    summary="Lifecycle history of one of my subscriptions, oldest first",
)
async def get_subscription_history(
    subscription_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[List[SubscriptionEventDTO]]:
    events = await GetSubscriptionHistoryQueryHandler(subscription_service).handle(
        GetSubscriptionHistoryQuery(user_id=current_user.user_id, subscription_id=subscription_id)
    )
    return ApiResponse(data=events)


# =========================================================================
# TRIAL
# =========================================================================

@subscriptions_router.post(
    "/trial/start",
    response_model=ApiResponse[TrialStatusDTO],
    status_code=status.HTTP_201_CREATED,
    summary="Start a free trial",
)
@limiter.limit(mutation_limit)
async def start_trial(
    request: Request,
    body: StartTrialRequest,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[TrialStatusDTO]:
    trial = await StartTrialCommandHandler(subscription_service).handle(StartTrialCommand(
        user_id=current_user.user_id,
        email=current_user.email,
        tier=body.tier,
    ))
    return ApiResponse(message="Trial started", data=trial)


@subscriptions_router.get(
    "/trial/status",
    response_model=ApiResponse[TrialStatusDTO],
    summary="My running trial, if any",
)
async def get_trial_status(
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[TrialStatusDTO]:
    trial = await GetTrialStatusQueryHandler(subscription_service).handle(
        GetTrialStatusQuery(user_id=current_user.user_id)
    )
    return ApiResponse(data=trial)


# =========================================================================
# TIER CHANGES & CANCELLATION
# =========================================================================

async def _change_tier(
    direction: TierChangeDirection,
    subscription_id: UUID,
    body: TierChangeRequest,
    current_user: CurrentUser,
    subscription_service: SubscriptionLifecycleService,
) -> ApiResponse[TierChangeDTO]:
    result = await ChangeTierCommandHandler(subscription_service).handle(ChangeTierCommand(
        user_id=current_user.user_id,
        subscription_id=subscription_id,
        direction=direction,
        new_tier=body.new_tier,
        effective_date=body.effective_date,
        preview=body.preview,
    ))
    if not result.applied:
        message = "Proration preview"
    elif direction == TierChangeDirection.UPGRADE:
        message = "Subscription upgraded"
    else:
        message = "Downgrade scheduled"
    return ApiResponse(message=message, data=result)


@subscriptions_router.post(
    "/{subscription_id}/upgrade",
    response_model=ApiResponse[TierChangeDTO],
    summary="Upgrade now, paying the prorated difference",
    responses={402: {"description": "Proration charge declined"}},
)
@limiter.limit(mutation_limit)
async def upgrade_subscription(
    request: Request,
    subscription_id: UUID,
    body: TierChangeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[TierChangeDTO]:
    return await _change_tier(
        TierChangeDirection.UPGRADE, subscription_id, body, current_user, subscription_service
    )


@subscriptions_router.post(
    "/{subscription_id}/downgrade",
    response_model=ApiResponse[TierChangeDTO],
    summary="Schedule a downgrade at the end of the billing period",
)
@limiter.limit(mutation_limit)
async def downgrade_subscription(
    request: Request,
    subscription_id: UUID,
    body: TierChangeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[TierChangeDTO]:
    return await _change_tier(
        TierChangeDirection.DOWNGRADE, subscription_id, body, current_user, subscription_service
    )


@subscriptions_router.post(
    "/{subscription_id}/cancel",
    response_model=ApiResponse[SubscriptionDTO],
    summary="Cancel; features stay until the paid period ends",
)
@limiter.limit(mutation_limit)
async def cancel_subscription(
    request: Request,
    subscription_id: UUID,
    body: Optional[CancelSubscriptionRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    subscription_service: SubscriptionLifecycleService = Depends(get_subscription_service),
) -> ApiResponse[SubscriptionDTO]:
    subscription = await CancelSubscriptionCommandHandler(subscription_service).handle(
        CancelSubscriptionCommand(
            user_id=current_user.user_id,
            subscription_id=subscription_id,
            reason=body.reason if body else None,
        )
    )
    return ApiResponse(message="Subscription cancelled", data=subscription)
