# 📄 File: app/modules/subscription_management/domain/services/pricing_service.py
# 🧭 Purpose (Layman Explanation):
# Works out what a plan costs: the list price, any discount from a code, how much is saved
# by paying yearly, and what is owed today when moving up to a bigger plan mid-month.
# 🧪 Purpose (Technical Summary):
# Pure price and proration calculations over the tier catalog, plus a thin async service that
# resolves promotional codes before pricing. All money is Decimal rounded half-up to cents.
# 🔗 Dependencies:
# - tier catalog, PromotionalCodeService, app.shared.utils.money
# 🔄 Connected Modules / Calls From:
# - SubscriptionLifecycleService, pricing endpoints, query handlers

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.shared.utils.money import ZERO, non_negative, to_money
from app.modules.subscription_management.domain.models.pricing import PricingInfo, ProrationInfo
from app.modules.subscription_management.domain.models.promotional_code import PromotionalCode
from app.modules.subscription_management.domain.models.subscription import Subscription
from app.modules.subscription_management.domain.models.tier import (
    BillingCycle,
    SubscriptionTier,
    TIER_ORDER,
    cycle_price,
    features_lost,
)
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)

logger = logging.getLogger(__name__)


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def calculate_price(
    tier: SubscriptionTier,
    billing_cycle: BillingCycle,
    promotional_code: Optional[PromotionalCode] = None,
    requested_code: Optional[str] = None
) -> PricingInfo:
    """
    Price one billing period of ``tier``.

    Args:
        tier: Tier being priced
        billing_cycle: Billing cadence
        promotional_code: An already-validated code to apply, if any
        requested_code: Code text the caller asked for; echoed back with
            ``promotional_code_valid`` set to whether it was applied

    Returns:
        PricingInfo: base, discount, final and savings amounts
    """
    tier = SubscriptionTier(tier)
    billing_cycle = BillingCycle(billing_cycle)

    base_price = to_money(cycle_price(tier, billing_cycle))
    discount = promotional_code.discount_for(base_price) if promotional_code else ZERO
    final_price = non_negative(base_price - discount)

    if billing_cycle == BillingCycle.MONTHLY:
        savings = ZERO
    else:
        monthly_equivalent = cycle_price(tier, BillingCycle.MONTHLY) * billing_cycle.months
        savings = non_negative(to_money(monthly_equivalent - final_price))

    code_text = promotional_code.code if promotional_code else requested_code
    return PricingInfo(
        tier=tier,
        billing_cycle=billing_cycle,
        base_price=base_price,
        discount_applied=discount,
        final_price=final_price,
        savings=savings,
        promotional_code=code_text,
        promotional_code_valid=(promotional_code is not None) if code_text else None,
    )


def price_table() -> List[PricingInfo]:
    """Undiscounted price of every tier and cycle, lowest tier first."""
    return [
        calculate_price(tier, cycle)
        for tier in TIER_ORDER
        for cycle in BillingCycle
    ]


def calculate_proration(
    subscription: Subscription,
    to_tier: SubscriptionTier,
    as_of: datetime
) -> ProrationInfo:
    """
    Amount due to move ``subscription`` to ``to_tier`` at ``as_of``.

    proration = remaining days / days in cycle x (target cycle price - current cycle price)

    A move to a cheaper tier is never refunded, so its proration is zero.
    """
    to_tier = SubscriptionTier(to_tier)
    cycle = subscription.billing_cycle
    total_days = cycle.days
    remaining_days = subscription.days_remaining_in_period(as_of)

    price_difference = to_money(cycle_price(to_tier, cycle) - cycle_price(subscription.tier, cycle))
    if price_difference > ZERO:
        proration_amount = to_money(Decimal(remaining_days) / Decimal(total_days) * price_difference)
    else:
        proration_amount = ZERO

    return ProrationInfo(
        from_tier=subscription.tier,
        to_tier=to_tier,
        billing_cycle=cycle,
        current_cycle_remaining=remaining_days,
        total_cycle_days=total_days,
        price_difference=price_difference,
        proration_amount=proration_amount,
        new_cycle_amount=to_money(cycle_price(to_tier, cycle)),
        effective_date=as_of,
        features_lost=features_lost(subscription.tier, to_tier),
    )


# =============================================================================
# SERVICE
# =============================================================================

class PricingService:
    """Prices tiers, resolving promotional codes first."""

    def __init__(self, promotional_code_service: PromotionalCodeService):
        self.promotional_code_service = promotional_code_service

    async def compute_price(
        self,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle,
        promotional_code: Optional[str],
        now: datetime
    ) -> PricingInfo:
        """An invalid code yields no discount, never an error."""
        promo = None
        if promotional_code:
            validation, promo = await self.promotional_code_service.find_applicable(
                promotional_code, tier, now
            )
            promotional_code = validation.code
        return calculate_price(tier, billing_cycle, promo, promotional_code)
