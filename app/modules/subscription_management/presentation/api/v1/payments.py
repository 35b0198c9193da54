# 📄 File: app/modules/subscription_management/presentation/api/v1/payments.py
# 🧭 Purpose (Layman Explanation):
# The web endpoints for failed payments: see which renewals did not go through, how long is
# left to fix them, and press "retry" (optionally with a new card).
#
# 🧪 Purpose (Technical Summary):
# FastAPI router for /api/payments. A declined retry is a normal 200 answer with success=false;
# rule violations (grace expired, attempts exhausted) surface as 400 through the global handler.
#
# 🔗 Dependencies:
# - FastAPI router, slowapi limiter, payment command/query handlers
#
# 🔄 Connected Modules / Calls From:
# - app.api.v1.router (mounted under /api)

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.shared.core.dependencies import CurrentUser, get_current_admin_user, get_current_user
from app.shared.core.rate_limiter import limiter, payment_retry_limit
from app.modules.subscription_management.application.commands.payment_commands import RetryPaymentCommand
from app.modules.subscription_management.application.dto.payment_dto import (
    FailedPaymentDTO,
    PaymentStatisticsDTO,
    RetryResultDTO,
)
from app.modules.subscription_management.application.handlers.command_handlers import (
    RetryPaymentCommandHandler,
)
from app.modules.subscription_management.application.handlers.query_handlers import (
    GetPaymentStatisticsQueryHandler,
    ListFailedPaymentsQueryHandler,
)
from app.modules.subscription_management.application.queries.subscription_queries import (
    ListFailedPaymentsQuery,
)
from app.modules.subscription_management.domain.services.payment_retry_service import PaymentRetryService
from app.modules.subscription_management.presentation.dependencies import get_payment_retry_service
from app.modules.subscription_management.presentation.schemas.subscription_schemas import (
    ApiResponse,
    RetryPaymentRequest,
)

logger = logging.getLogger(__name__)

payments_router = APIRouter(prefix="/payments", tags=["Payments"])


@payments_router.get(
    "/failed",
    response_model=ApiResponse[List[FailedPaymentDTO]],
    summary="My failed payments with grace period status",
)
async def list_failed_payments(
    current_user: CurrentUser = Depends(get_current_user),
    retry_service: PaymentRetryService = Depends(get_payment_retry_service),
) -> ApiResponse[List[FailedPaymentDTO]]:
    failed = await ListFailedPaymentsQueryHandler(retry_service).handle(
        ListFailedPaymentsQuery(user_id=current_user.user_id)
    )
    return ApiResponse(data=failed)


@payments_router.get(
    "/failed/statistics",
    response_model=ApiResponse[PaymentStatisticsDTO],
    summary="Failed payment recovery statistics (admin only)",
)
async def get_failed_payment_statistics(
    current_admin: CurrentUser = Depends(get_current_admin_user),
    retry_service: PaymentRetryService = Depends(get_payment_retry_service),
) -> ApiResponse[PaymentStatisticsDTO]:
    statistics = await GetPaymentStatisticsQueryHandler(retry_service).handle()
    return ApiResponse(data=statistics)


@payments_router.post(
    "/{payment_id}/retry",
    response_model=RetryResultDTO,
    summary="Retry a failed payment",
    responses={
        400: {"description": "Grace period expired or retries exhausted"},
        403: {"description": "Not your payment"},
        404: {"description": "No failed payment with this id"},
    },
)
@limiter.limit(payment_retry_limit)
async def retry_payment(
    request: Request,
    payment_id: UUID,
    body: Optional[RetryPaymentRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    retry_service: PaymentRetryService = Depends(get_payment_retry_service),
) -> RetryResultDTO:
    result = await RetryPaymentCommandHandler(retry_service).handle(RetryPaymentCommand(
        user_id=current_user.user_id,
        payment_id=payment_id,
        payment_method_id=body.payment_method_id if body else None,
    ))
    logger.info(
        f"Retry of payment {payment_id} by {current_user.user_id}: "
        f"{'succeeded' if result.success else 'declined'} ({result.retries_remaining} left)"
    )
    return result
