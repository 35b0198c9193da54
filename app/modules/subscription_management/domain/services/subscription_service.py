# 📄 File: app/modules/subscription_management/domain/services/subscription_service.py
# 🧭 Purpose (Layman Explanation):
# The rule book for a contractor's plan: starting a free trial, paying for a plan, moving up or down
# a tier, cancelling, and what happens automatically when a billing period ends.
# 🧪 Purpose (Technical Summary):
# SubscriptionLifecycleService owns every subscription state transition. It validates preconditions,
# charges through the PaymentGateway port before applying paid changes, persists with optimistic
# concurrency, writes the audit trail, and runs the renewal and expiry sweeps used by Celery.
# 🔗 Dependencies:
# - SubscriptionRepository, PaymentRepository, PromotionalCodeService, PaymentGateway
# - pricing_service (calculate_price, calculate_proration), app.shared.config.settings
# 🔄 Connected Modules / Calls From:
# - application command/query handlers, app.background_jobs.subscription_tasks

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from app.shared.config.settings import Settings, get_settings
from app.shared.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    ConcurrentModificationError,
    ExternalServiceError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from app.shared.utils.logging import log_billing_event
from app.shared.utils.money import ZERO, to_money
from app.modules.subscription_management.domain.models.events import (
    SubscriptionEvent,
    SubscriptionEventType,
)
from app.modules.subscription_management.domain.models.payment import (
    ChargeResult,
    FailedPayment,
    Payment,
    PaymentKind,
)
from app.modules.subscription_management.domain.models.pricing import ProrationInfo
from app.modules.subscription_management.domain.models.subscription import (
    Subscription,
    SubscriptionStatus,
    utcnow,
)
from app.modules.subscription_management.domain.models.tier import (
    BillingCycle,
    SubscriptionTier,
    SubscriptionTierInfo,
    cycle_price,
    get_tier_info,
    tier_rank,
)
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.domain.services.payment_gateway import PaymentGateway
from app.modules.subscription_management.domain.services.pricing_service import (
    calculate_price,
    calculate_proration,
)
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)

logger = logging.getLogger(__name__)


class TierChangeResult(BaseModel):
    """Outcome of an upgrade or downgrade request"""

    subscription: Subscription
    proration: ProrationInfo
    applied: bool
    payment: Optional[Payment] = None


class SubscriptionLifecycleService:
    """
    Subscription state machine.

    Transitions:
        trial -> active (subscribe), inactive (trial lapses), cancelled
        active -> cancelled, expired (grace lapses or downgrade to essential)
        cancelled -> expired (paid period ends)
    """

    def __init__(
        self,
        subscription_repository: SubscriptionRepository,
        payment_repository: PaymentRepository,
        promotional_code_service: PromotionalCodeService,
        payment_gateway: PaymentGateway,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        settings = settings or get_settings()
        self.subscriptions = subscription_repository
        self.payments = payment_repository
        self.promotional_codes = promotional_code_service
        self.gateway = payment_gateway
        self.trial_days = settings.TRIAL_DURATION_DAYS
        self.grace_days = settings.PAYMENT_GRACE_PERIOD_DAYS
        self.currency = settings.BILLING_CURRENCY
        self.clock = clock

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_subscriptions(self, user_id: str) -> List[Subscription]:
        return await self.subscriptions.list_by_user(user_id)

    async def get_current_subscription(self, user_id: str) -> Optional[Subscription]:
        return await self.subscriptions.get_current_for_user(user_id, self.clock())

    async def get_effective_tier(self, user_id: str) -> SubscriptionTier:
        """Tier whose features the user has right now; essential without a subscription."""
        current = await self.get_current_subscription(user_id)
        return current.tier if current else SubscriptionTier.ESSENTIAL

    async def get_user_features(self, user_id: str) -> SubscriptionTierInfo:
        return get_tier_info(await self.get_effective_tier(user_id))

    async def has_feature_access(self, user_id: str, feature: str) -> bool:
        features = await self.get_user_features(user_id)
        return feature in features.features

    async def get_trial(self, user_id: str) -> Optional[Subscription]:
        """The user's running trial, if any."""
        current = await self.get_current_subscription(user_id)
        if current and current.status == SubscriptionStatus.TRIAL:
            return current
        return None

    async def get_owned_subscription(self, user_id: str, subscription_id: UUID) -> Subscription:
        """
        Raises:
            NotFoundError: If the subscription does not exist
            AuthorizationError: If it belongs to another user
        """
        subscription = await self.subscriptions.get_by_id(subscription_id)
        if subscription is None:
            raise NotFoundError(
                "Subscription not found",
                resource_type="subscription",
                resource_id=str(subscription_id),
            )
        if subscription.user_id != user_id:
            logger.warning(f"User {user_id} attempted to access subscription {subscription_id}")
            raise AuthorizationError(
                "You can only manage your own subscriptions",
                resource_type="subscription",
                resource_id=str(subscription_id),
            )
        return subscription

    async def get_history(self, user_id: str, subscription_id: UUID) -> List[SubscriptionEvent]:
        """Lifecycle events of one of the user's subscriptions, oldest first."""
        subscription = await self.get_owned_subscription(user_id, subscription_id)
        return await self.subscriptions.list_events(subscription.id)

    # =========================================================================
    # TRIAL
    # =========================================================================

    async def start_trial(
        self,
        user_id: str,
        tier: SubscriptionTier,
        email: Optional[str] = None
    ) -> Subscription:
        """
        Start a free trial of a paid tier.

        Raises:
            BusinessRuleViolationError: If the tier has no trial, the user is already
                subscribed, or the user has had a trial before
        """
        tier = SubscriptionTier(tier)
        now = self.clock()

        if not get_tier_info(tier).is_trial_eligible:
            raise BusinessRuleViolationError(
                f"The {tier.value} tier does not offer a free trial",
                rule="tier_not_trial_eligible",
            )

        current = await self.subscriptions.get_current_for_user(user_id, now)
        if current is not None and current.tier != SubscriptionTier.ESSENTIAL:
            raise BusinessRuleViolationError(
                "You already have an active subscription",
                rule="already_subscribed",
                details={"subscription_id": str(current.id)},
            )

        if await self.subscriptions.has_used_trial(user_id):
            raise BusinessRuleViolationError(
                "A free trial has already been used on this account",
                rule="trial_already_used",
            )

        subscription = Subscription.create_trial(user_id, tier, now, self.trial_days)
        subscription.billing_email = email
        subscription = await self.subscriptions.add(subscription)

        await self._record(subscription, SubscriptionEventType.TRIAL_STARTED, {
            "trial_end_date": subscription.trial_end_date.isoformat(),
        })
        return subscription

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    async def subscribe(
        self,
        user_id: str,
        tier: SubscriptionTier,
        billing_cycle: BillingCycle,
        promotional_code: Optional[str] = None,
        email: Optional[str] = None,
        payment_method_id: Optional[str] = None
    ) -> Tuple[Subscription, Optional[Payment]]:
        """
        Subscribe to a paid tier, converting a running trial in place.

        The promotional code is redeemed and the first period charged before the
        subscription becomes active; a decline leaves nothing changed.

        Raises:
            BusinessRuleViolationError: Essential tier, existing paid subscription,
                or an invalid promotional code
            PaymentRequiredError: If the charge is declined
        """
        tier = SubscriptionTier(tier)
        billing_cycle = BillingCycle(billing_cycle)
        now = self.clock()

        if tier == SubscriptionTier.ESSENTIAL:
            raise BusinessRuleViolationError(
                "The essential tier is free and needs no subscription",
                rule="essential_is_free",
            )

        current = await self.subscriptions.get_current_for_user(user_id, now)
        if current is not None and current.status != SubscriptionStatus.TRIAL:
            raise BusinessRuleViolationError(
                "You already have an active subscription",
                rule="already_subscribed",
                details={"subscription_id": str(current.id)},
            )

        promo = None
        if promotional_code:
            validation, promo = await self.promotional_codes.find_applicable(promotional_code, tier, now)
            if promo is None:
                raise BusinessRuleViolationError(
                    "Promotional code cannot be applied",
                    rule="invalid_promotional_code",
                    details={"code": validation.code, "reason": validation.reason.value},
                )
            if not await self.promotional_codes.redeem(promo):
                raise BusinessRuleViolationError(
                    "Promotional code has reached its usage limit",
                    rule="invalid_promotional_code",
                    details={"code": promo.code, "reason": "usage_limit_reached"},
                )

        pricing = calculate_price(tier, billing_cycle, promo)

        is_new = current is None
        subscription = current or Subscription(
            user_id=user_id,
            tier=tier,
            status=SubscriptionStatus.INACTIVE,
            billing_cycle=billing_cycle,
            created_at=now,
            updated_at=now,
        )
        subscription.billing_email = email or subscription.billing_email

        payment = None
        if pricing.final_price > ZERO:
            subscription.stripe_customer_id = await self.gateway.ensure_customer(
                user_id,
                subscription.billing_email,
                customer_id=subscription.stripe_customer_id or await self._known_customer_id(user_id),
                payment_method_id=payment_method_id,
            )
            payment, result = await self._charge(
                subscription,
                pricing.final_price,
                PaymentKind.SUBSCRIPTION,
                f"{get_tier_info(tier).name} subscription ({billing_cycle.value})",
                idempotency_key=f"subscribe-{subscription.id}-{subscription.version}",
            )
            if not result.success:
                raise PaymentRequiredError(
                    result.message or "Your card was declined",
                    decline_code=result.decline_code,
                )

        subscription.activate(tier, billing_cycle, pricing.final_price, now, promo.code if promo else None)

        if is_new:
            subscription = await self.subscriptions.add(subscription)
        else:
            subscription = await self.subscriptions.save(subscription)
        if payment is not None:
            payment = await self.payments.add_payment(payment)

        await self._record(subscription, SubscriptionEventType.SUBSCRIBED, {
            "tier": tier.value,
            "billing_cycle": billing_cycle.value,
            "price": str(pricing.final_price),
            "discount": str(pricing.discount_applied),
            "promotional_code": promo.code if promo else None,
            "converted_trial": not is_new,
        })
        return subscription, payment

    # =========================================================================
    # TIER CHANGES
    # =========================================================================

    async def upgrade(
        self,
        user_id: str,
        subscription_id: UUID,
        new_tier: SubscriptionTier,
        preview: bool = False,
        effective_date: Optional[datetime] = None
    ) -> TierChangeResult:
        """
        Move to a higher tier immediately, charging the prorated difference first.

        ``effective_date`` quotes the proration as of another moment and is only
        accepted together with ``preview``.

        Raises:
            BusinessRuleViolationError: If the subscription is not active or the
                target tier is not higher, or a renewal payment is outstanding
            ValidationError: If effective_date is misused
            PaymentRequiredError: If the proration charge is declined
        """
        new_tier = SubscriptionTier(new_tier)
        now = self.clock()
        subscription = await self.get_owned_subscription(user_id, subscription_id)
        self._require_active(subscription, "upgrade")

        if tier_rank(new_tier) <= subscription.rank:
            raise BusinessRuleViolationError(
                f"Cannot upgrade from {subscription.tier.value} to {new_tier.value}",
                rule="not_an_upgrade",
            )

        # A lapsed period has nothing left to prorate; the unpaid renewal must settle first
        open_failure = await self.payments.get_open_failed_payment_for_subscription(subscription.id)
        if open_failure is not None or subscription.is_past_due(now):
            raise BusinessRuleViolationError(
                "Settle the outstanding payment before changing tier",
                rule="payment_past_due",
                details={"payment_id": str(open_failure.payment_id)} if open_failure else None,
            )

        as_of = now
        if effective_date is not None:
            if not preview:
                raise ValidationError(
                    "effective_date can only be used to preview an upgrade",
                    field="effective_date",
                )
            if effective_date < now or effective_date > subscription.current_period_end:
                raise ValidationError(
                    "effective_date must fall within the current billing period",
                    field="effective_date",
                )
            as_of = effective_date

        proration = calculate_proration(subscription, new_tier, as_of)
        if preview:
            return TierChangeResult(subscription=subscription, proration=proration, applied=False)

        payment = None
        if proration.proration_amount > ZERO:
            if not subscription.stripe_customer_id:
                raise BusinessRuleViolationError(
                    "No payment method on file for this subscription",
                    rule="payment_method_required",
                )
            payment, result = await self._charge(
                subscription,
                proration.proration_amount,
                PaymentKind.PRORATION,
                f"Upgrade to {get_tier_info(new_tier).name} (prorated)",
                idempotency_key=f"upgrade-{subscription.id}-{subscription.version}",
            )
            if not result.success:
                raise PaymentRequiredError(
                    result.message or "Your card was declined",
                    decline_code=result.decline_code,
                )

        previous_tier = subscription.tier
        subscription.change_tier(new_tier, proration.new_cycle_amount, now)
        subscription = await self.subscriptions.save(subscription)
        if payment is not None:
            payment = await self.payments.add_payment(payment)

        await self._record(subscription, SubscriptionEventType.UPGRADED, {
            "from_tier": previous_tier.value,
            "to_tier": new_tier.value,
            "proration_amount": str(proration.proration_amount),
            "remaining_days": proration.current_cycle_remaining,
        })
        return TierChangeResult(subscription=subscription, proration=proration, applied=True, payment=payment)

    async def downgrade(
        self,
        user_id: str,
        subscription_id: UUID,
        new_tier: SubscriptionTier,
        preview: bool = False,
        effective_date: Optional[datetime] = None
    ) -> TierChangeResult:
        """
        Schedule a move to a lower tier at a billing boundary.

        Features of the current tier stay available until then and nothing is
        refunded. The change applies at the end of the current period, or at the
        first renewal on or after a later ``effective_date``.

        Raises:
            BusinessRuleViolationError: If the subscription is not active or the
                target tier is not lower
            ValidationError: If effective_date is before the end of the period
        """
        new_tier = SubscriptionTier(new_tier)
        now = self.clock()
        subscription = await self.get_owned_subscription(user_id, subscription_id)
        self._require_active(subscription, "downgrade")

        if tier_rank(new_tier) >= subscription.rank:
            raise BusinessRuleViolationError(
                f"Cannot downgrade from {subscription.tier.value} to {new_tier.value}",
                rule="not_a_downgrade",
            )

        boundary = subscription.current_period_end or now
        effective = effective_date or boundary
        if effective < boundary:
            raise ValidationError(
                "Downgrades take effect at the end of the current billing period",
                field="effective_date",
                details={"current_period_end": boundary.isoformat()},
            )

        proration = calculate_proration(subscription, new_tier, effective)
        if preview:
            return TierChangeResult(subscription=subscription, proration=proration, applied=False)

        subscription.schedule_tier_change(new_tier, effective, now)
        subscription = await self.subscriptions.save(subscription)

        await self._record(subscription, SubscriptionEventType.DOWNGRADE_SCHEDULED, {
            "from_tier": subscription.tier.value,
            "to_tier": new_tier.value,
            "effective_date": effective.isoformat(),
            "features_lost": proration.features_lost,
        })
        return TierChangeResult(subscription=subscription, proration=proration, applied=True)

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    async def cancel(self, user_id: str, subscription_id: UUID, reason: Optional[str] = None) -> Subscription:
        """
        Cancel; the tier's features remain until the end of the paid period or trial.

        Raises:
            BusinessRuleViolationError: If the subscription is not active or trialing
        """
        now = self.clock()
        subscription = await self.get_owned_subscription(user_id, subscription_id)
        if subscription.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL):
            raise BusinessRuleViolationError(
                f"A {subscription.status.value} subscription cannot be cancelled",
                rule="not_cancellable",
            )

        subscription.cancel(now, reason)
        subscription = await self.subscriptions.save(subscription)
        await self._record(subscription, SubscriptionEventType.CANCELLED, {
            "end_date": subscription.end_date.isoformat() if subscription.end_date else None,
            "reason": reason,
        })
        return subscription

    # =========================================================================
    # SCHEDULED SWEEPS
    # =========================================================================

    async def process_renewals(self, limit: int = 100) -> Dict[str, int]:
        """Renew every active subscription whose period has ended."""
        now = self.clock()
        stats = {"renewed": 0, "failed": 0, "ended": 0, "skipped": 0}

        for subscription in await self.subscriptions.list_due_for_renewal(now, limit):
            try:
                outcome = await self.renew_subscription(subscription, now)
            except (ExternalServiceError, ConcurrentModificationError) as e:
                logger.error(f"Renewal of subscription {subscription.id} skipped: {e.message}")
                stats["skipped"] += 1
                continue
            stats[outcome] += 1

        logger.info(f"Renewal sweep finished: {stats}")
        return stats

    async def renew_subscription(self, subscription: Subscription, now: datetime) -> str:
        """
        Start the next period of one subscription.

        A downgrade due at this boundary is applied first. A declined charge
        opens a failed payment with a grace period; the subscription keeps its
        features meanwhile.

        The subscription is saved before the payment and audit rows are written,
        so a version conflict leaves no trace and the next sweep repeats the
        charge under the same idempotency key.

        Returns:
            "renewed", "failed" or "ended"

        Raises:
            ConcurrentModificationError: If the subscription changed since it was read
        """
        boundary = subscription.current_period_end or now
        downgraded_from = None

        if subscription.pending_tier is not None and subscription.pending_change_effective_date <= boundary:
            target = subscription.pending_tier
            previous_tier = subscription.tier
            if target == SubscriptionTier.ESSENTIAL:
                subscription.expire(boundary)
                await self.subscriptions.save(subscription)
                await self._record(subscription, SubscriptionEventType.EXPIRED, {
                    "reason": "downgraded_to_essential",
                    "from_tier": previous_tier.value,
                })
                return "ended"

            subscription.apply_pending_change(boundary, to_money(cycle_price(target, subscription.billing_cycle)))
            downgraded_from = previous_tier

        amount = to_money(cycle_price(subscription.tier, subscription.billing_cycle))
        payment = None
        result = ChargeResult(success=True)

        if amount > ZERO and subscription.stripe_customer_id:
            payment, result = await self._charge(
                subscription,
                amount,
                PaymentKind.RENEWAL,
                f"{get_tier_info(subscription.tier).name} renewal ({subscription.billing_cycle.value})",
                idempotency_key=f"renewal-{subscription.id}-{boundary.isoformat()}",
            )
        elif amount > ZERO:
            payment = self._new_payment(subscription, amount, PaymentKind.RENEWAL, "Renewal")
            result = ChargeResult(
                success=False,
                decline_code="no_payment_method",
                message="No payment method on file",
            )
            payment.mark_failed(result.decline_code, result.message, now)

        if result.success:
            subscription.renew(amount, now)
        subscription = await self.subscriptions.save(subscription)

        if downgraded_from is not None:
            await self._record(subscription, SubscriptionEventType.DOWNGRADED, {
                "from_tier": downgraded_from.value,
                "to_tier": subscription.tier.value,
            })
        if payment is not None:
            payment = await self.payments.add_payment(payment)

        if result.success:
            await self._record(subscription, SubscriptionEventType.RENEWED, {
                "amount": str(amount),
                "payment_id": str(payment.id) if payment else None,
            })
            return "renewed"

        failed = await self.payments.add_failed_payment(FailedPayment.open(payment, now, self.grace_days))
        await self._record(subscription, SubscriptionEventType.PAYMENT_FAILED, {
            "payment_id": str(payment.id),
            "decline_code": result.decline_code,
            "grace_period_end": failed.grace_period_end.isoformat(),
        })
        return "failed"

    async def expire_lapsed(self, limit: int = 100) -> Dict[str, int]:
        """
        End trials past their end date, cancelled subscriptions past their paid
        period, and subscriptions whose failed-payment grace period has elapsed.
        """
        now = self.clock()
        stats = {"trials_ended": 0, "cancellations_ended": 0, "grace_expired": 0}

        for subscription in await self.subscriptions.list_lapsed_trials(now, limit):
            subscription.end_trial(now)
            await self.subscriptions.save(subscription)
            await self._record(subscription, SubscriptionEventType.TRIAL_ENDED, {})
            stats["trials_ended"] += 1

        for subscription in await self.subscriptions.list_ended_cancellations(now, limit):
            subscription.expire(now)
            await self.subscriptions.save(subscription)
            await self._record(subscription, SubscriptionEventType.EXPIRED, {"reason": "cancelled"})
            stats["cancellations_ended"] += 1

        for failed in await self.payments.list_grace_expired(now, limit):
            subscription = await self.subscriptions.get_by_id(failed.subscription_id)
            if subscription is not None and subscription.status == SubscriptionStatus.ACTIVE:
                subscription.expire(now)
                await self.subscriptions.save(subscription)
                await self._record(subscription, SubscriptionEventType.EXPIRED, {
                    "reason": "grace_period_elapsed",
                    "payment_id": str(failed.payment_id),
                })
                stats["grace_expired"] += 1
            await self.payments.delete_failed_payment(failed.id)

        logger.info(f"Expiry sweep finished: {stats}")
        return stats

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_active(self, subscription: Subscription, action: str) -> None:
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise BusinessRuleViolationError(
                f"Only active subscriptions can {action}; this one is {subscription.status.value}",
                rule="subscription_not_active",
            )

    async def _known_customer_id(self, user_id: str) -> Optional[str]:
        for subscription in await self.subscriptions.list_by_user(user_id):
            if subscription.stripe_customer_id:
                return subscription.stripe_customer_id
        return None

    def _new_payment(
        self,
        subscription: Subscription,
        amount: Decimal,
        kind: PaymentKind,
        description: str
    ) -> Payment:
        now = self.clock()
        return Payment(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            amount=amount,
            currency=self.currency,
            kind=kind,
            description=description,
            created_at=now,
            updated_at=now,
        )

    async def _charge(
        self,
        subscription: Subscription,
        amount: Decimal,
        kind: PaymentKind,
        description: str,
        idempotency_key: str
    ) -> Tuple[Payment, ChargeResult]:
        """Charge once and return the (unsaved) payment record with the processor's answer."""
        payment = self._new_payment(subscription, amount, kind, description)
        result = await self.gateway.charge(
            subscription.stripe_customer_id,
            amount,
            self.currency,
            description,
            idempotency_key,
            metadata={
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
                "user_id": subscription.user_id,
            },
        )
        now = self.clock()
        if result.success:
            payment.mark_succeeded(result.processor_reference, now)
        else:
            payment.mark_failed(result.decline_code, result.message, now)
            logger.warning(
                f"Charge declined for subscription {subscription.id}: "
                f"{result.decline_code} ({kind.value} {amount})"
            )
        return payment, result

    async def _record(
        self,
        subscription: Subscription,
        event_type: SubscriptionEventType,
        data: Dict
    ) -> None:
        await self.subscriptions.record_event(SubscriptionEvent(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            event_type=event_type,
            event_data=data,
            created_at=self.clock(),
        ))
        log_billing_event(
            logger,
            event_type.value,
            subscription_id=str(subscription.id),
            user_id=subscription.user_id,
            tier=subscription.tier.value,
            status=subscription.status.value,
        )
