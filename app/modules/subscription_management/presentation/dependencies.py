# 📄 File: app/modules/subscription_management/presentation/dependencies.py
# 🧭 Purpose (Layman Explanation):
# Wires the subscription features together for each web request: the database session, the
# repositories on top of it, the card processor and the business services that use them.
# 🧪 Purpose (Technical Summary):
# FastAPI dependency providers for repositories and domain services. Every provider in one request
# shares the request's AsyncSession; tests override these providers with in-memory fakes.
# 🔗 Dependencies:
# FastAPI Depends, SQLAlchemy AsyncSession, repository implementations, Stripe gateway
# 🔄 Connected Modules / Calls From:
# app.modules.subscription_management.presentation.api.v1.*, app.main (gateway shutdown)

import logging
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.infrastructure.database.session import get_db_session
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.repositories.promotional_code_repository import (
    PromotionalCodeRepository,
)
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.domain.services.payment_gateway import PaymentGateway
from app.modules.subscription_management.domain.services.payment_retry_service import PaymentRetryService
from app.modules.subscription_management.domain.services.pricing_service import PricingService
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (
    SubscriptionLifecycleService,
)
from app.modules.subscription_management.infrastructure.database.payment_repository_impl import (
    PaymentRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.database.promotional_code_repository_impl import (
    PromotionalCodeRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.database.subscription_repository_impl import (
    SubscriptionRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.external.stripe_gateway import StripePaymentGateway

logger = logging.getLogger(__name__)


# =========================================================================
# REPOSITORIES
# =========================================================================

def get_subscription_repository(
    session: AsyncSession = Depends(get_db_session),
) -> SubscriptionRepository:
    return SubscriptionRepositoryImpl(session)


def get_payment_repository(
    session: AsyncSession = Depends(get_db_session),
) -> PaymentRepository:
    return PaymentRepositoryImpl(session)


def get_promotional_code_repository(
    session: AsyncSession = Depends(get_db_session),
) -> PromotionalCodeRepository:
    return PromotionalCodeRepositoryImpl(session)


# =========================================================================
# EXTERNAL SERVICES
# =========================================================================

@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    """Process-wide Stripe gateway; its HTTP session is closed on shutdown."""
    return StripePaymentGateway()


# =========================================================================
# DOMAIN SERVICES
# =========================================================================

def get_promotional_code_service(
    repository: PromotionalCodeRepository = Depends(get_promotional_code_repository),
) -> PromotionalCodeService:
    return PromotionalCodeService(repository)


def get_pricing_service(
    promotional_code_service: PromotionalCodeService = Depends(get_promotional_code_service),
) -> PricingService:
    return PricingService(promotional_code_service)


def get_subscription_service(
    subscription_repository: SubscriptionRepository = Depends(get_subscription_repository),
    payment_repository: PaymentRepository = Depends(get_payment_repository),
    promotional_code_service: PromotionalCodeService = Depends(get_promotional_code_service),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> SubscriptionLifecycleService:
    return SubscriptionLifecycleService(
        subscription_repository,
        payment_repository,
        promotional_code_service,
        payment_gateway,
    )


def get_payment_retry_service(
    payment_repository: PaymentRepository = Depends(get_payment_repository),
    subscription_repository: SubscriptionRepository = Depends(get_subscription_repository),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentRetryService:
    return PaymentRetryService(payment_repository, subscription_repository, payment_gateway)
