# 📄 File: app/modules/subscription_management/application/handlers/query_handlers.py
# 🧭 Purpose (Layman Explanation):
# The "question answerers": they look up plans, features, prices, trials and payments and
# package the answers for the app.
#
# 🧪 Purpose (Technical Summary):
# CQRS query handlers over the domain services and the payment repository, mapping to DTOs.
# Catalog and price-table reads are pure and need no database.
#
# 🔗 Dependencies:
# - application queries and DTOs, domain services, tier catalog
#
# 🔄 Connected Modules / Calls From:
# - app.modules.subscription_management.presentation.api.v1 (routers)

import logging
from typing import List, Optional

from app.modules.subscription_management.application.dto.payment_dto import (
    FailedPaymentDTO,
    PaymentDTO,
    PaymentStatisticsDTO,
)
from app.modules.subscription_management.application.dto.subscription_dto import (
    CurrentSubscriptionDTO,
    FeatureAccessDTO,
    PricingDTO,
    PromotionalCodeDTO,
    PromoValidationDTO,
    SubscriptionDTO,
    SubscriptionEventDTO,
    SubscriptionListDTO,
    TierDTO,
    TrialStatusDTO,
)
from app.modules.subscription_management.application.queries.subscription_queries import (
    CalculatePriceQuery,
    GetBillingHistoryQuery,
    GetCurrentSubscriptionQuery,
    GetFeaturesQuery,
    GetSubscriptionHistoryQuery,
    GetTrialStatusQuery,
    ListFailedPaymentsQuery,
    ListSubscriptionsQuery,
    ValidatePromotionalCodeQuery,
)
from app.modules.subscription_management.domain.models.subscription import utcnow
from app.modules.subscription_management.domain.models.tier import (
    SubscriptionTier,
    get_tier_info,
    list_tiers,
)
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.services.payment_retry_service import PaymentRetryService
from app.modules.subscription_management.domain.services.pricing_service import PricingService, price_table
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (
    SubscriptionLifecycleService,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CATALOG & PRICING (no database)
# =============================================================================

def list_tier_dtos() -> List[TierDTO]:
    return [TierDTO.from_domain(info) for info in list_tiers()]


def price_table_dtos() -> List[PricingDTO]:
    return [PricingDTO.from_domain(pricing) for pricing in price_table()]


class CalculatePriceQueryHandler:
    def __init__(self, pricing_service: PricingService):
        self._pricing_service = pricing_service

    async def handle(self, query: CalculatePriceQuery) -> PricingDTO:
        pricing = await self._pricing_service.compute_price(
            query.tier, query.billing_cycle, query.promotional_code, utcnow()
        )
        return PricingDTO.from_domain(pricing)


class ValidatePromotionalCodeQueryHandler:
    def __init__(self, promotional_code_service: PromotionalCodeService):
        self._promotional_code_service = promotional_code_service

    async def handle(self, query: ValidatePromotionalCodeQuery) -> PromoValidationDTO:
        validation = await self._promotional_code_service.validate_code(query.code, query.tier, utcnow())
        return PromoValidationDTO.from_domain(validation)


class ListPromotionalCodesQueryHandler:
    def __init__(self, promotional_code_service: PromotionalCodeService):
        self._promotional_code_service = promotional_code_service

    async def handle(self) -> List[PromotionalCodeDTO]:
        return [PromotionalCodeDTO.from_domain(promo) for promo in await self._promotional_code_service.list_codes()]


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class ListSubscriptionsQueryHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, query: ListSubscriptionsQuery) -> SubscriptionListDTO:
        now = self._subscription_service.clock()
        subscriptions = await self._subscription_service.list_subscriptions(query.user_id)
        return SubscriptionListDTO(
            subscriptions=[SubscriptionDTO.from_domain(s, now) for s in subscriptions],
            total=len(subscriptions),
        )


class GetSubscriptionHistoryQueryHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, query: GetSubscriptionHistoryQuery) -> List[SubscriptionEventDTO]:
        events = await self._subscription_service.get_history(query.user_id, query.subscription_id)
        return [SubscriptionEventDTO.from_domain(event) for event in events]


class GetCurrentSubscriptionQueryHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, query: GetCurrentSubscriptionQuery) -> CurrentSubscriptionDTO:
        now = self._subscription_service.clock()
        current = await self._subscription_service.get_current_subscription(query.user_id)
        effective_tier = get_tier_info(current.tier) if current else get_tier_info(SubscriptionTier.ESSENTIAL)
        return CurrentSubscriptionDTO(
            subscription=SubscriptionDTO.from_domain(current, now) if current else None,
            effective_tier=effective_tier.id.value,
            features=TierDTO.from_domain(effective_tier),
        )


class GetFeaturesQueryHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, query: GetFeaturesQuery) -> FeatureAccessDTO:
        effective = await self._subscription_service.get_effective_tier(query.user_id)
        info = get_tier_info(query.tier or effective)
        return FeatureAccessDTO(
            tier=info.id.value,
            name=info.name,
            features=list(info.features),
            limits=dict(info.limits),
            is_current_tier=info.id == effective,
        )


class GetTrialStatusQueryHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, query: GetTrialStatusQuery) -> Optional[TrialStatusDTO]:
        trial = await self._subscription_service.get_trial(query.user_id)
        if trial is None:
            return None
        return TrialStatusDTO.from_domain(trial, self._subscription_service.clock())


# =============================================================================
# PAYMENTS
# =============================================================================

class GetBillingHistoryQueryHandler:
    def __init__(self, payment_repository: PaymentRepository):
        self._payment_repository = payment_repository

    async def handle(self, query: GetBillingHistoryQuery) -> List[PaymentDTO]:
        payments = await self._payment_repository.list_payments_for_user(query.user_id, query.limit)
        return [PaymentDTO.from_domain(payment) for payment in payments]


class ListFailedPaymentsQueryHandler:
    def __init__(self, retry_service: PaymentRetryService):
        self._retry_service = retry_service

    async def handle(self, query: ListFailedPaymentsQuery) -> List[FailedPaymentDTO]:
        now = self._retry_service.clock()
        pairs = await self._retry_service.list_failed_payments(query.user_id)
        return [
            FailedPaymentDTO.from_domain(failed, payment, now, self._retry_service.max_attempts)
            for failed, payment in pairs
        ]


class GetPaymentStatisticsQueryHandler:
    def __init__(self, retry_service: PaymentRetryService):
        self._retry_service = retry_service

    async def handle(self) -> PaymentStatisticsDTO:
        return PaymentStatisticsDTO(**await self._retry_service.get_statistics())
