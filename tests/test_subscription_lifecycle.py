from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from app.shared.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    ConcurrentModificationError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from app.modules.subscription_management.domain.models.payment import PaymentKind, PaymentStatus
from app.modules.subscription_management.domain.models.subscription import SubscriptionStatus
from app.modules.subscription_management.domain.models.tier import (
    BillingCycle,
    SubscriptionTier,
)
from tests.conftest import OTHER_USER_ID, USER_EMAIL, USER_ID, active_subscription


def _rule(exc_info) -> str:
    return exc_info.value.details["rule"]


# =============================================================================
# TRIALS
# =============================================================================

async def test_start_trial(lifecycle, subscription_repository, gateway, clock):
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SPOTLIGHT, USER_EMAIL)

    assert trial.status == SubscriptionStatus.TRIAL
    assert trial.tier == SubscriptionTier.SPOTLIGHT
    assert trial.trial_end_date == clock() + timedelta(days=14)
    assert trial.trial_days_remaining(clock()) == 14
    assert trial.price == Decimal("0.00")
    assert gateway.charges == []
    assert subscription_repository.event_types(trial.id) == ["trial_started"]
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.SPOTLIGHT


async def test_essential_tier_has_no_trial(lifecycle):
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.start_trial(USER_ID, SubscriptionTier.ESSENTIAL)
    assert _rule(exc_info) == "tier_not_trial_eligible"


async def test_trial_is_refused_while_subscribed(lifecycle):
    await lifecycle.subscribe(USER_ID, "showcase", "monthly", email=USER_EMAIL)
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.start_trial(USER_ID, SubscriptionTier.SPOTLIGHT)
    assert _rule(exc_info) == "already_subscribed"


async def test_one_trial_per_account(lifecycle, clock):
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SHOWCASE)
    clock.advance(days=15)

    stats = await lifecycle.expire_lapsed()
    assert stats["trials_ended"] == 1
    assert (await lifecycle.subscriptions.get_by_id(trial.id)).status == SubscriptionStatus.INACTIVE
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.ESSENTIAL

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.start_trial(USER_ID, SubscriptionTier.SPOTLIGHT)
    assert _rule(exc_info) == "trial_already_used"


async def test_get_trial(lifecycle):
    assert await lifecycle.get_trial(USER_ID) is None
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SHOWCASE)
    assert (await lifecycle.get_trial(USER_ID)).id == trial.id


# =============================================================================
# SUBSCRIBE
# =============================================================================

async def test_subscribe_charges_first_period(lifecycle, gateway, payment_repository, clock):
    subscription, payment = await lifecycle.subscribe(
        USER_ID, SubscriptionTier.SHOWCASE, BillingCycle.MONTHLY, email=USER_EMAIL, payment_method_id="pm_card"
    )

    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.price == Decimal("29.00")
    assert subscription.current_period_end == clock() + timedelta(days=30)
    assert subscription.stripe_customer_id == f"cus_{USER_ID}"
    assert subscription.billing_email == USER_EMAIL

    assert payment.status == PaymentStatus.SUCCEEDED
    assert payment.kind == PaymentKind.SUBSCRIPTION
    assert payment.amount == Decimal("29.00")
    assert payment.id in payment_repository.payments

    assert len(gateway.charges) == 1
    assert gateway.charges[0]["amount"] == Decimal("29.00")
    assert gateway.customers[0]["payment_method_id"] == "pm_card"


async def test_subscribe_with_promotional_code(lifecycle, promotional_code_repository, gateway):
    subscription, payment = await lifecycle.subscribe(
        USER_ID, "showcase", "yearly", promotional_code="welcome10", email=USER_EMAIL
    )

    assert subscription.price == Decimal("269.10")
    assert subscription.promotional_code == "WELCOME10"
    assert payment.amount == Decimal("269.10")
    assert promotional_code_repository.codes["WELCOME10"].usage_count == 1


async def test_subscribe_with_unusable_code_charges_nothing(lifecycle, gateway):
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.subscribe(USER_ID, "showcase", "monthly", promotional_code="NOPE")

    assert _rule(exc_info) == "invalid_promotional_code"
    assert exc_info.value.details["reason"] == "not_found"
    assert gateway.charges == []


async def test_subscribe_to_essential_is_refused(lifecycle):
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.subscribe(USER_ID, "essential", "monthly")
    assert _rule(exc_info) == "essential_is_free"


async def test_declined_subscription_is_not_activated(lifecycle, gateway):
    gateway.decline_with = "insufficient_funds"

    with pytest.raises(PaymentRequiredError) as exc_info:
        await lifecycle.subscribe(USER_ID, "spotlight", "monthly", email=USER_EMAIL)

    assert exc_info.value.status_code == 402
    assert exc_info.value.details["decline_code"] == "insufficient_funds"
    assert await lifecycle.list_subscriptions(USER_ID) == []
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.ESSENTIAL


async def test_second_subscription_is_refused(lifecycle):
    await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    assert _rule(exc_info) == "already_subscribed"


async def test_subscribing_converts_trial_in_place(lifecycle, subscription_repository, clock):
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SHOWCASE, USER_EMAIL)
    clock.advance(days=3)

    subscription, payment = await lifecycle.subscribe(USER_ID, "spotlight", "yearly")

    assert subscription.id == trial.id
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.tier == SubscriptionTier.SPOTLIGHT
    assert subscription.billing_email == USER_EMAIL
    assert subscription.current_period_end == clock() + timedelta(days=365)
    assert payment.amount == Decimal("699.00")
    assert len(await lifecycle.list_subscriptions(USER_ID)) == 1
    assert subscription_repository.event_types(trial.id) == ["trial_started", "subscribed"]


# =============================================================================
# UPGRADES
# =============================================================================

async def test_upgrade_charges_prorated_difference(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    clock.advance(days=15)

    result = await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)

    assert result.applied is True
    assert result.proration.proration_amount == Decimal("20.00")
    assert result.payment.kind == PaymentKind.PRORATION
    assert result.payment.amount == Decimal("20.00")
    assert result.subscription.tier == SubscriptionTier.SPOTLIGHT
    assert result.subscription.price == Decimal("69.00")
    # Period is unchanged by an upgrade
    assert result.subscription.current_period_end == subscription.current_period_end
    assert len(gateway.charges) == 2


async def test_upgrade_preview_changes_nothing(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    clock.advance(days=5)

    result = await lifecycle.upgrade(
        USER_ID,
        subscription.id,
        SubscriptionTier.SPOTLIGHT,
        preview=True,
        effective_date=clock() + timedelta(days=15),
    )

    assert result.applied is False
    assert result.payment is None
    assert result.proration.current_cycle_remaining == 10
    assert result.proration.proration_amount == Decimal("13.33")
    assert (await lifecycle.get_current_subscription(USER_ID)).tier == SubscriptionTier.SHOWCASE
    assert len(gateway.charges) == 1


async def test_upgrade_effective_date_requires_preview(lifecycle, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(ValidationError):
        await lifecycle.upgrade(
            USER_ID, subscription.id, "spotlight", effective_date=clock() + timedelta(days=1)
        )


async def test_upgrade_preview_outside_period_is_invalid(lifecycle, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(ValidationError):
        await lifecycle.upgrade(
            USER_ID, subscription.id, "spotlight", preview=True, effective_date=clock() + timedelta(days=45)
        )


async def test_upgrade_to_lower_tier_is_refused(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SHOWCASE)
    assert _rule(exc_info) == "not_an_upgrade"


async def test_upgrade_to_same_tier_is_refused(lifecycle, gateway):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SHOWCASE)
    assert _rule(exc_info) == "not_an_upgrade"
    assert len(gateway.charges) == 1


async def test_upgrade_refused_while_renewal_is_unpaid(failed_renewal, lifecycle, retry_service, gateway):
    subscription, failed = failed_renewal
    charges_before = len(gateway.charges)

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)

    assert _rule(exc_info) == "payment_past_due"
    assert exc_info.value.details["payment_id"] == str(failed.payment_id)
    assert len(gateway.charges) == charges_before

    # Settling the renewal keeps the tier and price it was billed for
    outcome = await retry_service.retry_payment(USER_ID, failed.payment_id)
    assert outcome.success is True
    recovered = await lifecycle.get_current_subscription(USER_ID)
    assert recovered.tier == SubscriptionTier.SHOWCASE
    assert recovered.price == Decimal("29.00")

    upgraded = await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)
    assert upgraded.applied is True
    assert upgraded.payment.amount == Decimal("40.00")


async def test_upgrade_refused_once_period_has_lapsed(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    # Renewal sweep has not reached it yet
    clock.advance(days=30, hours=1)

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)

    assert _rule(exc_info) == "payment_past_due"
    assert len(gateway.charges) == 1


async def test_declined_upgrade_keeps_current_tier(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    clock.advance(days=10)
    gateway.decline_with = "card_declined"

    with pytest.raises(PaymentRequiredError):
        await lifecycle.upgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)

    current = await lifecycle.get_current_subscription(USER_ID)
    assert current.tier == SubscriptionTier.SHOWCASE
    assert current.price == Decimal("29.00")


async def test_upgrade_of_trial_is_refused(lifecycle):
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SHOWCASE)
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.upgrade(USER_ID, trial.id, SubscriptionTier.SPOTLIGHT)
    assert _rule(exc_info) == "subscription_not_active"


async def test_tier_changes_require_ownership(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")

    with pytest.raises(AuthorizationError):
        await lifecycle.upgrade(OTHER_USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)
    with pytest.raises(NotFoundError):
        await lifecycle.downgrade(USER_ID, uuid4(), SubscriptionTier.ESSENTIAL)


# =============================================================================
# DOWNGRADES
# =============================================================================

async def test_downgrade_waits_for_period_end(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    clock.advance(days=10)

    result = await lifecycle.downgrade(USER_ID, subscription.id, SubscriptionTier.SHOWCASE)

    assert result.applied is True
    assert result.proration.proration_amount == Decimal("0.00")
    assert "Priority Support" in result.proration.features_lost
    assert result.subscription.tier == SubscriptionTier.SPOTLIGHT
    assert result.subscription.pending_tier == SubscriptionTier.SHOWCASE
    assert result.subscription.pending_change_effective_date == subscription.current_period_end
    assert await lifecycle.has_feature_access(USER_ID, "Priority Support")

    clock.advance(days=20)
    stats = await lifecycle.process_renewals()

    assert stats["renewed"] == 1
    renewed = await lifecycle.get_current_subscription(USER_ID)
    assert renewed.tier == SubscriptionTier.SHOWCASE
    assert renewed.pending_tier is None
    assert renewed.price == Decimal("29.00")
    assert gateway.charges[-1]["amount"] == Decimal("29.00")
    assert not await lifecycle.has_feature_access(USER_ID, "Priority Support")


async def test_downgrade_to_essential_ends_subscription_at_boundary(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    await lifecycle.downgrade(USER_ID, subscription.id, SubscriptionTier.ESSENTIAL)

    clock.advance(days=30)
    stats = await lifecycle.process_renewals()

    assert stats["ended"] == 1
    ended = await lifecycle.subscriptions.get_by_id(subscription.id)
    assert ended.status == SubscriptionStatus.EXPIRED
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.ESSENTIAL
    assert len(gateway.charges) == 1


async def test_downgrade_before_period_end_is_invalid(lifecycle, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    with pytest.raises(ValidationError):
        await lifecycle.downgrade(
            USER_ID, subscription.id, SubscriptionTier.SHOWCASE, effective_date=clock() + timedelta(days=1)
        )


async def test_downgrade_to_higher_tier_is_refused(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.downgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)
    assert _rule(exc_info) == "not_a_downgrade"


async def test_downgrade_to_same_tier_is_refused(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.downgrade(USER_ID, subscription.id, SubscriptionTier.SPOTLIGHT)
    assert _rule(exc_info) == "not_a_downgrade"

    stored = await lifecycle.subscriptions.get_by_id(subscription.id)
    assert stored.pending_tier is None


# =============================================================================
# CANCELLATION
# =============================================================================

async def test_cancel_keeps_features_until_period_end(lifecycle, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    clock.advance(days=12)

    cancelled = await lifecycle.cancel(USER_ID, subscription.id, reason="Slow season")

    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert cancelled.end_date == subscription.current_period_end
    assert cancelled.cancellation_reason == "Slow season"
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.SHOWCASE

    clock.advance(days=18)
    stats = await lifecycle.expire_lapsed()

    assert stats["cancellations_ended"] == 1
    assert (await lifecycle.subscriptions.get_by_id(subscription.id)).status == SubscriptionStatus.EXPIRED
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.ESSENTIAL


async def test_cancelled_subscription_is_not_renewed(lifecycle, gateway, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    await lifecycle.cancel(USER_ID, subscription.id)
    clock.advance(days=31)

    stats = await lifecycle.process_renewals()

    assert stats["renewed"] == 0
    assert len(gateway.charges) == 1


async def test_cancel_twice_is_refused(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    await lifecycle.cancel(USER_ID, subscription.id)
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await lifecycle.cancel(USER_ID, subscription.id)
    assert _rule(exc_info) == "not_cancellable"


async def test_cancelled_trial_ends_with_trial(lifecycle):
    trial = await lifecycle.start_trial(USER_ID, SubscriptionTier.SPOTLIGHT)
    cancelled = await lifecycle.cancel(USER_ID, trial.id)
    assert cancelled.end_date == trial.trial_end_date


# =============================================================================
# RENEWALS
# =============================================================================

async def test_renewal_starts_next_period(lifecycle, gateway, subscription_repository, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    first_period_end = subscription.current_period_end
    clock.advance(days=30, hours=1)

    stats = await lifecycle.process_renewals()

    assert stats == {"renewed": 1, "failed": 0, "ended": 0, "skipped": 0}
    renewed = await subscription_repository.get_by_id(subscription.id)
    assert renewed.current_period_start == first_period_end
    assert renewed.current_period_end == first_period_end + timedelta(days=30)
    assert gateway.charges[-1]["idempotency_key"] == f"renewal-{subscription.id}-{first_period_end.isoformat()}"
    assert "renewed" in subscription_repository.event_types(subscription.id)


async def test_declined_renewal_opens_grace_period(failed_renewal, lifecycle, payment_repository, clock):
    subscription, failed = failed_renewal

    assert failed.subscription_id == subscription.id
    assert failed.grace_period_end == clock() + timedelta(days=7)
    assert failed.retry_attempts == 0
    assert payment_repository.payments[failed.payment_id].status == PaymentStatus.FAILED
    # Features stay on during the grace period
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.SHOWCASE

    # Not charged again while the failure is open
    stats = await lifecycle.process_renewals()
    assert stats["failed"] == 0 and stats["renewed"] == 0


async def test_grace_period_expiry_ends_subscription(failed_renewal, lifecycle, payment_repository, clock):
    subscription, _ = failed_renewal
    clock.advance(days=7, hours=1)

    stats = await lifecycle.expire_lapsed()

    assert stats["grace_expired"] == 1
    assert payment_repository.failed_payments == {}
    assert (await lifecycle.subscriptions.get_by_id(subscription.id)).status == SubscriptionStatus.EXPIRED
    assert await lifecycle.get_effective_tier(USER_ID) == SubscriptionTier.ESSENTIAL


async def test_renewal_without_payment_method_fails(lifecycle, subscription_repository, payment_repository, gateway, clock):
    subscription = active_subscription(
        SubscriptionTier.SHOWCASE, BillingCycle.MONTHLY, Decimal("29.00"), clock() - timedelta(days=31)
    )
    await subscription_repository.add(subscription)

    stats = await lifecycle.process_renewals()

    assert stats["failed"] == 1
    assert gateway.charges == []
    payment = next(iter(payment_repository.payments.values()))
    assert payment.failure_code == "no_payment_method"
    assert payment.kind == PaymentKind.RENEWAL


async def test_renewal_conflict_leaves_no_payment_behind(
    lifecycle, subscription_repository, payment_repository, gateway, clock
):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    clock.advance(days=30)
    subscription_repository.conflict_on_save = True

    stats = await lifecycle.process_renewals()

    assert stats["skipped"] == 1
    assert len(payment_repository.payments) == 1
    assert "renewed" not in subscription_repository.event_types(subscription.id)

    subscription_repository.conflict_on_save = False
    assert (await lifecycle.process_renewals())["renewed"] == 1

    renewals = [p for p in payment_repository.payments.values() if p.kind == PaymentKind.RENEWAL]
    assert len(renewals) == 1
    # Both attempts reached the processor under one idempotency key
    assert gateway.charges[1]["idempotency_key"] == gateway.charges[2]["idempotency_key"]


# =============================================================================
# CONCURRENCY
# =============================================================================

async def test_stale_write_is_rejected(lifecycle, subscription_repository):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    first = await subscription_repository.get_by_id(subscription.id)
    second = await subscription_repository.get_by_id(subscription.id)

    first.cancellation_reason = "first writer"
    await subscription_repository.save(first)

    second.cancellation_reason = "second writer"
    with pytest.raises(ConcurrentModificationError) as exc_info:
        await subscription_repository.save(second)

    assert exc_info.value.status_code == 409
    stored = await subscription_repository.get_by_id(subscription.id)
    assert stored.cancellation_reason == "first writer"
    assert stored.version == subscription.version + 1


async def test_cancel_losing_a_race_changes_nothing(lifecycle, subscription_repository):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    subscription_repository.conflict_on_save = True

    with pytest.raises(ConcurrentModificationError):
        await lifecycle.cancel(USER_ID, subscription.id, reason="Closing")

    subscription_repository.conflict_on_save = False
    stored = await subscription_repository.get_by_id(subscription.id)
    assert stored.status == SubscriptionStatus.ACTIVE
    assert "cancelled" not in subscription_repository.event_types(subscription.id)


# =============================================================================
# HISTORY
# =============================================================================

async def test_history_lists_transitions_oldest_first(lifecycle, clock):
    subscription, _ = await lifecycle.subscribe(USER_ID, "spotlight", "monthly")
    clock.advance(days=3)
    await lifecycle.downgrade(USER_ID, subscription.id, SubscriptionTier.SHOWCASE)
    clock.advance(days=1)
    await lifecycle.cancel(USER_ID, subscription.id)

    events = await lifecycle.get_history(USER_ID, subscription.id)

    assert [e.event_type.value for e in events] == ["subscribed", "downgrade_scheduled", "cancelled"]
    assert events[0].event_data["tier"] == "spotlight"
    assert events[-1].created_at == clock()


async def test_history_requires_ownership(lifecycle):
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly")
    with pytest.raises(AuthorizationError):
        await lifecycle.get_history(OTHER_USER_ID, subscription.id)


# =============================================================================
# FEATURE ACCESS
# =============================================================================

async def test_users_without_subscription_get_essential(lifecycle):
    features = await lifecycle.get_user_features(USER_ID)
    assert features.id == SubscriptionTier.ESSENTIAL
    assert await lifecycle.has_feature_access(USER_ID, "Basic Profile")
    assert not await lifecycle.has_feature_access(USER_ID, "Featured Badge")
