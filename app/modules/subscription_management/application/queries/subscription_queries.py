# 📄 File: app/modules/subscription_management/application/queries/subscription_queries.py
# 🧭 Purpose (Layman Explanation):
# The "questions" the app can ask: what plan am I on, what can my plan do, how much would a plan
# cost, is this discount code good, and what have I paid so far.
#
# 🧪 Purpose (Technical Summary):
# CQRS query definitions for subscription, pricing, promotional code and payment reads.
#
# 🔗 Dependencies:
# - pydantic, domain enums
#
# 🔄 Connected Modules / Calls From:
# - app.modules.subscription_management.application.handlers.query_handlers

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.subscription_management.domain.models.tier import BillingCycle, SubscriptionTier


class _Query(BaseModel):
    model_config = ConfigDict(frozen=True)


class ListSubscriptionsQuery(_Query):
    user_id: str


class GetCurrentSubscriptionQuery(_Query):
    user_id: str


class GetFeaturesQuery(_Query):
    """Features of the caller's effective tier, or of ``tier`` when given."""

    user_id: str
    tier: Optional[SubscriptionTier] = None


class GetTrialStatusQuery(_Query):
    user_id: str


class CalculatePriceQuery(_Query):
    tier: SubscriptionTier
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    promotional_code: Optional[str] = Field(default=None, max_length=50)


class ValidatePromotionalCodeQuery(_Query):
    code: str = Field(..., min_length=1, max_length=50)
    tier: SubscriptionTier


class GetBillingHistoryQuery(_Query):
    user_id: str
    limit: int = Field(default=50, ge=1, le=200)


class ListFailedPaymentsQuery(_Query):
    user_id: str


class GetSubscriptionHistoryQuery(_Query):
    user_id: str
    subscription_id: UUID
