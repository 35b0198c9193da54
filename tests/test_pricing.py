from datetime import timedelta
from decimal import Decimal

import pytest

from app.modules.subscription_management.domain.models.promotional_code import (
    DiscountType,
    PromotionalCode,
)
from app.modules.subscription_management.domain.models.tier import (
    BillingCycle,
    SubscriptionTier,
    cycle_price,
    features_lost,
    list_tiers,
)
from app.modules.subscription_management.domain.services.pricing_service import (
    PricingService,
    calculate_price,
    calculate_proration,
    price_table,
)
from tests.conftest import active_subscription, welcome_code


# =============================================================================
# TIER CATALOG
# =============================================================================

def test_tiers_are_listed_lowest_first():
    assert [tier.id for tier in list_tiers()] == [
        SubscriptionTier.ESSENTIAL,
        SubscriptionTier.SHOWCASE,
        SubscriptionTier.SPOTLIGHT,
    ]


@pytest.mark.parametrize("tier,cycle,price", [
    ("essential", "monthly", "0.00"),
    ("showcase", "monthly", "29.00"),
    ("showcase", "yearly", "299.00"),
    ("showcase", "2year", "499.00"),
    ("spotlight", "monthly", "69.00"),
    ("spotlight", "yearly", "699.00"),
    ("spotlight", "2year", "1199.00"),
])
def test_catalog_prices(tier, cycle, price):
    assert cycle_price(tier, cycle) == Decimal(price)


def test_only_paid_tiers_offer_trials():
    eligible = {tier.id for tier in list_tiers() if tier.is_trial_eligible}
    assert eligible == {SubscriptionTier.SHOWCASE, SubscriptionTier.SPOTLIGHT}


def test_billing_cycle_lengths():
    assert [cycle.days for cycle in BillingCycle] == [30, 365, 730]
    assert [cycle.months for cycle in BillingCycle] == [1, 12, 24]


def test_features_lost_on_downgrade():
    lost = features_lost(SubscriptionTier.SPOTLIGHT, SubscriptionTier.SHOWCASE)
    assert "Priority Support" in lost
    assert "Custom Branding" in lost
    assert "Direct Contact" not in lost
    assert features_lost(SubscriptionTier.SHOWCASE, SubscriptionTier.SPOTLIGHT) != []


# =============================================================================
# PRICE CALCULATION
# =============================================================================

def test_monthly_price_has_no_savings():
    pricing = calculate_price(SubscriptionTier.SHOWCASE, BillingCycle.MONTHLY)
    assert pricing.base_price == Decimal("29.00")
    assert pricing.final_price == Decimal("29.00")
    assert pricing.discount_applied == Decimal("0.00")
    assert pricing.savings == Decimal("0.00")
    assert pricing.promotional_code is None
    assert pricing.promotional_code_valid is None


def test_longer_cycles_save_against_monthly_billing():
    assert calculate_price("spotlight", "yearly").savings == Decimal("129.00")
    assert calculate_price("showcase", "2year").savings == Decimal("197.00")


def test_percentage_code_on_yearly_showcase():
    pricing = calculate_price("showcase", "yearly", welcome_code())
    assert pricing.discount_applied == Decimal("29.90")
    assert pricing.final_price == Decimal("269.10")
    assert pricing.savings == Decimal("78.90")
    assert pricing.promotional_code == "WELCOME10"
    assert pricing.promotional_code_valid is True


def test_fixed_discount_never_exceeds_price():
    promo = PromotionalCode(code="BIG50", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("50"))
    pricing = calculate_price("showcase", "monthly", promo)
    assert pricing.discount_applied == Decimal("29.00")
    assert pricing.final_price == Decimal("0.00")


def test_discount_on_free_tier_is_zero():
    pricing = calculate_price("essential", "monthly", welcome_code())
    assert pricing.discount_applied == Decimal("0.00")
    assert pricing.final_price == Decimal("0.00")


def test_price_table_covers_every_tier_and_cycle():
    table = price_table()
    assert len(table) == 9
    assert all(row.discount_applied == Decimal("0.00") for row in table)


async def test_invalid_code_prices_without_discount(promotional_code_service, clock):
    pricing = await PricingService(promotional_code_service).compute_price(
        SubscriptionTier.SHOWCASE, BillingCycle.MONTHLY, " nope ", clock()
    )
    assert pricing.final_price == Decimal("29.00")
    assert pricing.promotional_code == "NOPE"
    assert pricing.promotional_code_valid is False


async def test_valid_code_is_matched_case_insensitively(promotional_code_service, clock):
    pricing = await PricingService(promotional_code_service).compute_price(
        SubscriptionTier.SHOWCASE, BillingCycle.YEARLY, "welcome10", clock()
    )
    assert pricing.final_price == Decimal("269.10")
    assert pricing.promotional_code_valid is True


# =============================================================================
# PRORATION
# =============================================================================

def _showcase_monthly(now, days_into_period):
    return active_subscription(
        SubscriptionTier.SHOWCASE,
        BillingCycle.MONTHLY,
        Decimal("29.00"),
        now - timedelta(days=days_into_period),
    )


def test_upgrade_proration_halfway_through_month(clock):
    subscription = _showcase_monthly(clock(), 15)
    proration = calculate_proration(subscription, SubscriptionTier.SPOTLIGHT, clock())
    assert proration.current_cycle_remaining == 15
    assert proration.total_cycle_days == 30
    assert proration.price_difference == Decimal("40.00")
    assert proration.proration_amount == Decimal("20.00")
    assert proration.new_cycle_amount == Decimal("69.00")
    assert proration.features_lost == []


def test_proration_rounds_to_cents(clock):
    subscription = _showcase_monthly(clock(), 20)
    proration = calculate_proration(subscription, SubscriptionTier.SPOTLIGHT, clock())
    assert proration.current_cycle_remaining == 10
    assert proration.proration_amount == Decimal("13.33")


def test_downgrade_proration_is_never_a_refund(clock):
    subscription = _showcase_monthly(clock(), 5)
    proration = calculate_proration(subscription, SubscriptionTier.ESSENTIAL, clock())
    assert proration.proration_amount == Decimal("0.00")
    assert proration.price_difference == Decimal("-29.00")
    assert "Featured Badge" in proration.features_lost


def test_proration_after_period_end_is_zero(clock):
    subscription = _showcase_monthly(clock(), 31)
    proration = calculate_proration(subscription, SubscriptionTier.SPOTLIGHT, clock())
    assert proration.current_cycle_remaining == 0
    assert proration.proration_amount == Decimal("0.00")
