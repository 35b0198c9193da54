# 📄 File: app/modules/subscription_management/domain/models/subscription.py
# 🧭 Purpose (Layman Explanation):
# Describes one contractor's plan - which tier they are on, whether it is a trial, paid, cancelled
# or finished, what they paid and when the current billing period ends.
# 🧪 Purpose (Technical Summary):
# Subscription aggregate with status enumeration, billing period bookkeeping, scheduled tier
# changes and the state transitions (trial, activation, tier change, cancellation, renewal, expiry).
# Preconditions are enforced by SubscriptionLifecycleService; methods here only mutate state.
# 🔗 Dependencies:
# pydantic, datetime, decimal, uuid
# 🔄 Connected Modules / Calls From:
# subscription_service.py, payment_retry_service.py, subscription repository, API schemas

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .tier import BillingCycle, SubscriptionTier, tier_rank


class SubscriptionStatus(str, Enum):
    """Subscription status enumeration"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    TRIAL = "trial"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(BaseModel):
    """
    A user's subscription to a paid tier.

    Rows are never deleted; finished subscriptions stay as history with
    status inactive (lapsed trial) or expired.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    tier: SubscriptionTier
    status: SubscriptionStatus
    billing_cycle: BillingCycle = BillingCycle.MONTHLY

    # Price of one billing period at the time it was billed
    price: Decimal = Decimal("0.00")

    start_date: datetime = Field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None

    # Downgrades wait for a billing boundary
    pending_tier: Optional[SubscriptionTier] = None
    pending_change_effective_date: Optional[datetime] = None

    promotional_code: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    billing_email: Optional[str] = None
    stripe_customer_id: Optional[str] = None

    version: int = 1
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # =========================================================================
    # FACTORIES
    # =========================================================================

    @classmethod
    def create_trial(
        cls,
        user_id: str,
        tier: SubscriptionTier,
        now: datetime,
        trial_days: int
    ) -> "Subscription":
        """Free trial of a paid tier; nothing is billed."""
        trial_end = now + timedelta(days=trial_days)
        return cls(
            user_id=user_id,
            tier=tier,
            status=SubscriptionStatus.TRIAL,
            billing_cycle=BillingCycle.MONTHLY,
            price=Decimal("0.00"),
            start_date=now,
            trial_end_date=trial_end,
            current_period_start=now,
            current_period_end=trial_end,
            created_at=now,
            updated_at=now,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def rank(self) -> int:
        return tier_rank(self.tier)

    def is_current(self, now: datetime) -> bool:
        """Whether this subscription grants its tier's features at ``now``."""
        if self.status == SubscriptionStatus.ACTIVE:
            return True
        if self.status == SubscriptionStatus.TRIAL:
            return self.trial_end_date is not None and self.trial_end_date > now
        if self.status == SubscriptionStatus.CANCELLED:
            return self.end_date is not None and self.end_date > now
        return False

    def trial_days_remaining(self, now: datetime) -> int:
        if self.status != SubscriptionStatus.TRIAL or self.trial_end_date is None:
            return 0
        return max(0, math.ceil((self.trial_end_date - now).total_seconds() / 86400))

    def days_remaining_in_period(self, as_of: datetime) -> int:
        """Whole days left in the current period, clamped to the cycle length."""
        if self.current_period_end is None:
            return 0
        seconds = (self.current_period_end - as_of).total_seconds()
        return min(self.billing_cycle.days, max(0, math.ceil(seconds / 86400)))

    def is_past_due(self, now: datetime) -> bool:
        """Active but the paid period is over and not yet renewed."""
        return (
            self.status == SubscriptionStatus.ACTIVE
            and self.current_period_end is not None
            and self.current_period_end <= now
        )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utcnow()

    def activate(
        self,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle,
        price: Decimal,
        now: datetime,
        promotional_code: Optional[str] = None
    ) -> None:
        """Start a paid period; converts a trial in place."""
        self.tier = tier
        self.billing_cycle = billing_cycle
        self.price = price
        self.status = SubscriptionStatus.ACTIVE
        self.start_date = now
        self.end_date = None
        self.current_period_start = now
        self.current_period_end = now + timedelta(days=billing_cycle.days)
        self.promotional_code = promotional_code
        self._touch(now)

    def change_tier(self, new_tier: SubscriptionTier, new_price: Decimal, now: datetime) -> None:
        """Immediate tier change within the current period."""
        self.tier = new_tier
        self.price = new_price
        self.pending_tier = None
        self.pending_change_effective_date = None
        self._touch(now)

    def schedule_tier_change(self, new_tier: SubscriptionTier, effective_date: datetime, now: datetime) -> None:
        self.pending_tier = new_tier
        self.pending_change_effective_date = effective_date
        self._touch(now)

    def apply_pending_change(self, boundary: datetime, new_price: Decimal) -> bool:
        """Apply a scheduled tier change due at or before ``boundary``."""
        if self.pending_tier is None or self.pending_change_effective_date is None:
            return False
        if self.pending_change_effective_date > boundary:
            return False
        self.tier = self.pending_tier
        self.price = new_price
        self.promotional_code = None
        self.pending_tier = None
        self.pending_change_effective_date = None
        self._touch()
        return True

    def renew(self, price: Decimal, now: datetime) -> None:
        """Advance to the next billing period after a successful charge."""
        start = self.current_period_end or now
        if start < now - timedelta(days=self.billing_cycle.days):
            start = now
        self.price = price
        self.status = SubscriptionStatus.ACTIVE
        self.current_period_start = start
        self.current_period_end = start + timedelta(days=self.billing_cycle.days)
        self._touch(now)

    def cancel(self, now: datetime, reason: Optional[str] = None) -> None:
        """Stop renewing; features remain until the end of the paid period."""
        if self.status == SubscriptionStatus.TRIAL:
            self.end_date = self.trial_end_date
        else:
            self.end_date = self.current_period_end or now
        self.status = SubscriptionStatus.CANCELLED
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.pending_tier = None
        self.pending_change_effective_date = None
        self._touch(now)

    def expire(self, now: datetime) -> None:
        """End a paid subscription; the user falls back to the essential tier."""
        self.status = SubscriptionStatus.EXPIRED
        self.end_date = self.end_date if self.end_date and self.end_date <= now else now
        self.pending_tier = None
        self.pending_change_effective_date = None
        self._touch(now)

    def end_trial(self, now: datetime) -> None:
        self.status = SubscriptionStatus.INACTIVE
        self.end_date = self.trial_end_date or now
        self._touch(now)
