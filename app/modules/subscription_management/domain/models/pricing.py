# 📄 File: app/modules/subscription_management/domain/models/pricing.py
# 🧭 Purpose (Layman Explanation):
# The price tag for a plan (what it costs, the discount and how much the contractor saves) and the
# quote shown before switching tiers mid-period.
# 🧪 Purpose (Technical Summary):
# PricingInfo and ProrationInfo value objects produced by pricing_service; Decimal amounts
# rounded to cents, serialized as JSON numbers by the DTO layer.
# 🔗 Dependencies:
# pydantic, decimal, tier.py
# 🔄 Connected Modules / Calls From:
# pricing_service.py, subscription_service.py, subscription DTOs

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .tier import BillingCycle, SubscriptionTier


class PricingInfo(BaseModel):
    """Price of one billing period for a tier, after any promotional discount"""

    tier: SubscriptionTier
    billing_cycle: BillingCycle
    base_price: Decimal
    discount_applied: Decimal
    final_price: Decimal
    savings: Decimal
    promotional_code: Optional[str] = None
    promotional_code_valid: Optional[bool] = None


class ProrationInfo(BaseModel):
    """Amount due now and from the next cycle when changing tier mid-period"""

    from_tier: SubscriptionTier
    to_tier: SubscriptionTier
    billing_cycle: BillingCycle
    current_cycle_remaining: int = Field(description="Whole days left in the current period")
    total_cycle_days: int
    price_difference: Decimal
    proration_amount: Decimal
    new_cycle_amount: Decimal
    effective_date: datetime
    features_lost: List[str] = Field(default_factory=list)
