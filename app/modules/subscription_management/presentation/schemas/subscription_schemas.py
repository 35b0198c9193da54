# 📄 File: app/modules/subscription_management/presentation/schemas/subscription_schemas.py
# 🧭 Purpose (Layman Explanation):
# Describes what the app must send when it asks to subscribe, change plan, price a plan or retry a
# payment, and the common wrapper every successful answer comes back in.
#
# 🧪 Purpose (Technical Summary):
# Pydantic request bodies for the subscription and payment endpoints and the generic
# ``ApiResponse[T]`` success envelope. Enum-typed fields reject unknown tiers and cycles
# before any handler runs (surfacing as 400 through the validation handler).
#
# 🔗 Dependencies:
# - pydantic v2, domain enums
#
# 🔄 Connected Modules / Calls From:
# - presentation/api/v1/subscriptions.py, presentation/api/v1/payments.py

"""
Subscription API Schemas

Request Schemas:
- SubscribeRequest, StartTrialRequest, TierChangeRequest, CancelSubscriptionRequest
- PricingRequest, PromotionalCodeValidateRequest, CreatePromotionalCodeRequest
- RetryPaymentRequest

Response Schemas:
- ApiResponse[T]: {"success": true, "message": ..., "data": T}
"""

from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from app.modules.subscription_management.domain.models.promotional_code import DiscountType
from app.modules.subscription_management.domain.models.tier import BillingCycle, SubscriptionTier

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class SubscribeRequest(BaseModel):
    tier: SubscriptionTier = Field(..., description="showcase or spotlight")
    billing_cycle: BillingCycle = Field(default=BillingCycle.MONTHLY, description="monthly, yearly or 2year")
    promotional_code: Optional[str] = Field(default=None, max_length=50)
    payment_method_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Stripe PaymentMethod collected by the client",
    )


class StartTrialRequest(BaseModel):
    tier: SubscriptionTier


class TierChangeRequest(BaseModel):
    new_tier: SubscriptionTier
    effective_date: Optional[datetime] = Field(
        default=None,
        description="Upgrade previews: quote as of this date. Downgrades: apply at the first renewal on or after it.",
    )
    preview: bool = Field(default=False, description="Quote the proration without changing anything")

    @field_validator("effective_date")
    @classmethod
    def require_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            raise ValueError("effective_date must include a timezone offset")
        return v


class CancelSubscriptionRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


# =============================================================================
# PRICING & PROMOTIONAL CODES
# =============================================================================

class PricingRequest(BaseModel):
    tier: SubscriptionTier
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    promotional_code: Optional[str] = Field(default=None, max_length=50)


class PromotionalCodeValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    tier: SubscriptionTier


class CreatePromotionalCodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    tier_applicable: Optional[List[SubscriptionTier]] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True


# =============================================================================
# PAYMENTS
# =============================================================================

class RetryPaymentRequest(BaseModel):
    payment_method_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="New card to attach before retrying",
    )
