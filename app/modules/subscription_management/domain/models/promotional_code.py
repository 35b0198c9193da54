# 📄 File: app/modules/subscription_management/domain/models/promotional_code.py
# 🧭 Purpose (Layman Explanation):
# Describes a discount code (like WELCOME10) - how much it takes off, which plans it works for,
# when it runs out and how many times it can be used.
# 🧪 Purpose (Technical Summary):
# PromotionalCode entity with exactly one discount type, eligibility checks (active, expiry,
# usage cap, tier applicability) and discount computation capped at the base price.
# 🔗 Dependencies:
# pydantic, decimal, datetime
# 🔄 Connected Modules / Calls From:
# promotional_code_service.py, pricing_service.py, promotional code repository

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from app.shared.utils.money import ZERO, non_negative, to_money

from .tier import SubscriptionTier


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class PromoRejectionReason(str, Enum):
    """Why a code cannot be applied"""
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    TIER_NOT_APPLICABLE = "tier_not_applicable"


class PromotionalCode(BaseModel):
    """A discount code redeemable when subscribing"""

    id: UUID = Field(default_factory=uuid4)
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    tier_applicable: Optional[List[SubscriptionTier]] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Promotional code cannot be empty")
        return v

    @field_validator("usage_limit")
    @classmethod
    def validate_usage_limit(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Usage limit cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_discount_value(self) -> "PromotionalCode":
        if self.discount_value <= 0:
            raise ValueError("Discount value must be positive")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def applies_to(self, tier: SubscriptionTier) -> bool:
        return not self.tier_applicable or SubscriptionTier(tier) in self.tier_applicable

    def rejection_reason(self, tier: SubscriptionTier, now: datetime) -> Optional[PromoRejectionReason]:
        """First rule the code fails for this tier, or None when it can be applied."""
        if not self.is_active:
            return PromoRejectionReason.INACTIVE
        if self.is_expired(now):
            return PromoRejectionReason.EXPIRED
        if self.is_exhausted():
            return PromoRejectionReason.USAGE_LIMIT_REACHED
        if not self.applies_to(tier):
            return PromoRejectionReason.TIER_NOT_APPLICABLE
        return None

    def discount_for(self, base_price: Decimal) -> Decimal:
        """Discount amount on ``base_price``, never more than the price itself."""
        if base_price <= ZERO:
            return ZERO
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = to_money(base_price * self.discount_value / Decimal(100))
        else:
            discount = to_money(self.discount_value)
        return non_negative(min(discount, base_price))


class PromoCodeValidation(BaseModel):
    """Outcome of checking a code against a tier"""

    valid: bool
    code: str
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    reason: Optional[PromoRejectionReason] = None
