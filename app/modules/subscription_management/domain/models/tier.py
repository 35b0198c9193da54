# 📄 File: app/modules/subscription_management/domain/models/tier.py
# 🧭 Purpose (Layman Explanation):
# The price list and feature list for the three contractor plans (Essential, Showcase, Spotlight),
# kept in one place so every screen and every charge uses the same numbers.
# 🧪 Purpose (Technical Summary):
# Immutable tier catalog: tier/billing-cycle enums, per-cycle prices, features, numeric limits,
# trial eligibility and tier ranking used for upgrade/downgrade direction checks.
# 🔗 Dependencies:
# pydantic, decimal, enum
# 🔄 Connected Modules / Calls From:
# pricing_service.py, subscription_service.py, presentation schemas, tier endpoints

from decimal import Decimal
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionTier(str, Enum):
    """Visibility tiers a contractor can hold"""
    ESSENTIAL = "essential"
    SHOWCASE = "showcase"
    SPOTLIGHT = "spotlight"


class BillingCycle(str, Enum):
    """Billing cadence for paid tiers"""
    MONTHLY = "monthly"
    YEARLY = "yearly"
    TWO_YEAR = "2year"

    @property
    def months(self) -> int:
        return _CYCLE_MONTHS[self]

    @property
    def days(self) -> int:
        """Length of one billing period in days."""
        return _CYCLE_DAYS[self]


_CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.YEARLY: 12,
    BillingCycle.TWO_YEAR: 24,
}

_CYCLE_DAYS = {
    BillingCycle.MONTHLY: 30,
    BillingCycle.YEARLY: 365,
    BillingCycle.TWO_YEAR: 730,
}

# Lowest to highest
TIER_ORDER: List[SubscriptionTier] = [
    SubscriptionTier.ESSENTIAL,
    SubscriptionTier.SHOWCASE,
    SubscriptionTier.SPOTLIGHT,
]


class SubscriptionTierInfo(BaseModel):
    """Static description of one tier"""

    model_config = ConfigDict(frozen=True)

    id: SubscriptionTier
    name: str
    description: str
    prices: Dict[BillingCycle, Decimal]
    features: List[str]
    limits: Dict[str, int] = Field(default_factory=dict)
    is_trial_eligible: bool

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self.id)

    def price_for(self, cycle: BillingCycle) -> Decimal:
        return self.prices[cycle]


TIER_CATALOG: Dict[SubscriptionTier, SubscriptionTierInfo] = {
    SubscriptionTier.ESSENTIAL: SubscriptionTierInfo(
        id=SubscriptionTier.ESSENTIAL,
        name="Essential",
        description="Get listed and start receiving enquiries",
        prices={
            BillingCycle.MONTHLY: Decimal("0.00"),
            BillingCycle.YEARLY: Decimal("0.00"),
            BillingCycle.TWO_YEAR: Decimal("0.00"),
        },
        features=[
            "Basic Profile",
            "Portfolio Upload",
            "Basic Search Visibility",
            "Contact Form",
            "Basic Analytics",
        ],
        limits={"portfolio_items": 5, "video_portfolio_items": 0},
        is_trial_eligible=False,
    ),
    SubscriptionTier.SHOWCASE: SubscriptionTierInfo(
        id=SubscriptionTier.SHOWCASE,
        name="Showcase",
        description="Stand out with a richer profile and priority placement",
        prices={
            BillingCycle.MONTHLY: Decimal("29.00"),
            BillingCycle.YEARLY: Decimal("299.00"),
            BillingCycle.TWO_YEAR: Decimal("499.00"),
        },
        features=[
            "Enhanced Profile",
            "Portfolio Upload",
            "Priority Search Visibility",
            "Direct Contact",
            "Advanced Analytics",
            "Featured Badge",
            "Social Media Integration",
            "Video Portfolio",
        ],
        limits={"portfolio_items": 20, "video_portfolio_items": 5},
        is_trial_eligible=True,
    ),
    SubscriptionTier.SPOTLIGHT: SubscriptionTierInfo(
        id=SubscriptionTier.SPOTLIGHT,
        name="Spotlight",
        description="Top placement, premium branding and priority support",
        prices={
            BillingCycle.MONTHLY: Decimal("69.00"),
            BillingCycle.YEARLY: Decimal("699.00"),
            BillingCycle.TWO_YEAR: Decimal("1199.00"),
        },
        features=[
            "Premium Profile",
            "Unlimited Portfolio",
            "Top Search Visibility",
            "Direct Contact",
            "Premium Analytics",
            "Premium Badge",
            "Social Media Integration",
            "Video Portfolio",
            "Priority Support",
            "Custom Branding",
            "Advanced Matching",
        ],
        limits={},
        is_trial_eligible=True,
    ),
}


def list_tiers() -> List[SubscriptionTierInfo]:
    """All tiers, lowest first."""
    return [TIER_CATALOG[tier] for tier in TIER_ORDER]


def get_tier_info(tier: SubscriptionTier) -> SubscriptionTierInfo:
    return TIER_CATALOG[SubscriptionTier(tier)]


def tier_rank(tier: SubscriptionTier) -> int:
    return TIER_ORDER.index(SubscriptionTier(tier))


def cycle_price(tier: SubscriptionTier, cycle: BillingCycle) -> Decimal:
    """Catalog price of one billing period."""
    return get_tier_info(tier).price_for(BillingCycle(cycle))


def features_lost(from_tier: SubscriptionTier, to_tier: SubscriptionTier) -> List[str]:
    """Features of ``from_tier`` that ``to_tier`` does not include."""
    remaining = set(get_tier_info(to_tier).features)
    return [feature for feature in get_tier_info(from_tier).features if feature not in remaining]
