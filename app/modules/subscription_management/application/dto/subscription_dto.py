# 📄 File: app/modules/subscription_management/application/dto/subscription_dto.py
# 🧭 Purpose (Layman Explanation):
# The "shape" of subscription, plan, price and trial information when it is sent back to the app,
# so every screen gets the same fields no matter which endpoint it called.
# 🧪 Purpose (Technical Summary):
# Response DTOs built from domain entities. Money is Decimal internally and a JSON number on the
# wire; derived fields (is_current, days remaining) are computed against one clock reading.
# 🔗 Dependencies:
# - pydantic, app.shared.utils.money.JSONMoney, subscription domain models
# 🔄 Connected Modules / Calls From:
# - application handlers, presentation API routers

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.shared.utils.money import JSONMoney
from app.modules.subscription_management.domain.models.events import SubscriptionEvent
from app.modules.subscription_management.domain.models.pricing import PricingInfo, ProrationInfo
from app.modules.subscription_management.domain.models.promotional_code import (
    PromoCodeValidation,
    PromotionalCode,
)
from app.modules.subscription_management.domain.models.subscription import Subscription
from app.modules.subscription_management.domain.models.tier import (
    SubscriptionTierInfo,
    get_tier_info,
)

from .payment_dto import PaymentDTO


class TierDTO(BaseModel):
    """One tier of the catalog"""

    id: str
    name: str
    description: str
    prices: Dict[str, JSONMoney]
    features: List[str]
    limits: Dict[str, int] = Field(default_factory=dict)
    is_trial_eligible: bool

    @classmethod
    def from_domain(cls, info: SubscriptionTierInfo) -> "TierDTO":
        return cls(
            id=info.id.value,
            name=info.name,
            description=info.description,
            prices={cycle.value: price for cycle, price in info.prices.items()},
            features=list(info.features),
            limits=dict(info.limits),
            is_trial_eligible=info.is_trial_eligible,
        )


class SubscriptionDTO(BaseModel):
    """Subscription as returned by every endpoint"""

    id: UUID
    user_id: str
    tier: str
    tier_name: str
    status: str
    billing_cycle: str
    price: JSONMoney
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    pending_tier: Optional[str] = None
    pending_change_effective_date: Optional[datetime] = None
    promotional_code: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    is_current: bool
    days_remaining: int = Field(description="Days left in the current period or trial")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, subscription: Subscription, now: datetime) -> "SubscriptionDTO":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            tier=subscription.tier.value,
            tier_name=get_tier_info(subscription.tier).name,
            status=subscription.status.value,
            billing_cycle=subscription.billing_cycle.value,
            price=subscription.price,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            trial_end_date=subscription.trial_end_date,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            pending_tier=subscription.pending_tier.value if subscription.pending_tier else None,
            pending_change_effective_date=subscription.pending_change_effective_date,
            promotional_code=subscription.promotional_code,
            cancelled_at=subscription.cancelled_at,
            cancellation_reason=subscription.cancellation_reason,
            is_current=subscription.is_current(now),
            days_remaining=subscription.days_remaining_in_period(now) if subscription.is_current(now) else 0,
            created_at=subscription.created_at,
            updated_at=subscription.updated_at,
        )


class SubscriptionListDTO(BaseModel):
    subscriptions: List[SubscriptionDTO]
    total: int


class SubscriptionEventDTO(BaseModel):
    """One entry of a subscription's lifecycle history"""

    id: UUID
    event_type: str
    event_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_domain(cls, event: SubscriptionEvent) -> "SubscriptionEventDTO":
        return cls(
            id=event.id,
            event_type=event.event_type.value,
            event_data=event.event_data,
            created_at=event.created_at,
        )


class CurrentSubscriptionDTO(BaseModel):
    """Current subscription (if any) and the tier the user effectively has"""

    subscription: Optional[SubscriptionDTO] = None
    effective_tier: str
    features: TierDTO


class FeatureAccessDTO(BaseModel):
    tier: str
    name: str
    features: List[str]
    limits: Dict[str, int] = Field(default_factory=dict)
    is_current_tier: bool


class TrialStatusDTO(BaseModel):
    subscription_id: UUID
    tier: str
    trial_end_date: datetime
    days_remaining: int
    is_active: bool

    @classmethod
    def from_domain(cls, subscription: Subscription, now: datetime) -> "TrialStatusDTO":
        return cls(
            subscription_id=subscription.id,
            tier=subscription.tier.value,
            trial_end_date=subscription.trial_end_date,
            days_remaining=subscription.trial_days_remaining(now),
            is_active=subscription.is_current(now),
        )


class PricingDTO(BaseModel):
    """Price of one billing period"""

    tier: str
    billing_cycle: str
    base_price: JSONMoney
    total_price: JSONMoney
    discount_applied: JSONMoney
    final_price: JSONMoney
    savings: JSONMoney
    promotional_code: Optional[str] = None
    promotional_code_valid: Optional[bool] = None

    @classmethod
    def from_domain(cls, pricing: PricingInfo) -> "PricingDTO":
        return cls(
            tier=pricing.tier.value,
            billing_cycle=pricing.billing_cycle.value,
            base_price=pricing.base_price,
            total_price=pricing.base_price,
            discount_applied=pricing.discount_applied,
            final_price=pricing.final_price,
            savings=pricing.savings,
            promotional_code=pricing.promotional_code,
            promotional_code_valid=pricing.promotional_code_valid,
        )


class ProrationDTO(BaseModel):
    from_tier: str
    to_tier: str
    billing_cycle: str
    current_cycle_remaining: int
    total_cycle_days: int
    price_difference: JSONMoney
    proration_amount: JSONMoney
    new_cycle_amount: JSONMoney
    effective_date: datetime
    features_lost: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, proration: ProrationInfo) -> "ProrationDTO":
        data = proration.model_dump()
        for key in ("from_tier", "to_tier", "billing_cycle"):
            data[key] = getattr(proration, key).value
        return cls(**data)


class TierChangeDTO(BaseModel):
    """Upgrade/downgrade answer; ``applied`` is False for previews"""

    subscription: SubscriptionDTO
    proration: ProrationDTO
    applied: bool
    payment: Optional[PaymentDTO] = None


class SubscribeResultDTO(BaseModel):
    subscription: SubscriptionDTO
    payment: Optional[PaymentDTO] = None


class PromoValidationDTO(BaseModel):
    valid: bool
    code: str
    discount_type: Optional[str] = None
    discount_value: Optional[JSONMoney] = None
    reason: Optional[str] = None

    @classmethod
    def from_domain(cls, validation: PromoCodeValidation) -> "PromoValidationDTO":
        return cls(
            valid=validation.valid,
            code=validation.code,
            discount_type=validation.discount_type.value if validation.discount_type else None,
            discount_value=validation.discount_value,
            reason=validation.reason.value if validation.reason else None,
        )


class PromotionalCodeDTO(BaseModel):
    """Admin view of a promotional code"""

    id: UUID
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: JSONMoney
    tier_applicable: Optional[List[str]] = None
    usage_limit: Optional[int] = None
    usage_count: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, promo: PromotionalCode) -> "PromotionalCodeDTO":
        return cls(
            id=promo.id,
            code=promo.code,
            description=promo.description,
            discount_type=promo.discount_type.value,
            discount_value=promo.discount_value,
            tier_applicable=[tier.value for tier in promo.tier_applicable] if promo.tier_applicable else None,
            usage_limit=promo.usage_limit,
            usage_count=promo.usage_count,
            expires_at=promo.expires_at,
            is_active=promo.is_active,
            created_at=promo.created_at,
        )
