# 📄 File: app/modules/subscription_management/domain/services/payment_retry_service.py
# 🧭 Purpose (Layman Explanation):
# When a renewal charge fails, the contractor gets a week to fix it and can press "retry" up to
# three times. This file decides whether a retry is allowed and what happens when it works.
# 🧪 Purpose (Technical Summary):
# User-initiated retry of failed renewal payments: ownership, grace-period and attempt-cap checks,
# an atomic attempt claim before the processor call, and reactivation of the subscription on success.
# Also lists a user's failed payments and aggregates recovery statistics for admins.
# 🔗 Dependencies:
# - PaymentRepository, SubscriptionRepository, PaymentGateway, app.shared.config.settings
# 🔄 Connected Modules / Calls From:
# - RetryPaymentCommandHandler, failed payment query handlers, payments API

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from app.shared.config.settings import Settings, get_settings
from app.shared.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    NotFoundError,
)
from app.shared.utils.logging import log_billing_event
from app.shared.utils.money import ZERO
from app.modules.subscription_management.domain.models.events import (
    SubscriptionEvent,
    SubscriptionEventType,
)
from app.modules.subscription_management.domain.models.payment import (
    FailedPayment,
    GraceStatus,
    Payment,
    RetryOutcome,
)
from app.modules.subscription_management.domain.models.subscription import utcnow
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.domain.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


class PaymentRetryService:
    """Recovery of failed renewal payments."""

    def __init__(
        self,
        payment_repository: PaymentRepository,
        subscription_repository: SubscriptionRepository,
        payment_gateway: PaymentGateway,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        settings = settings or get_settings()
        self.payments = payment_repository
        self.subscriptions = subscription_repository
        self.gateway = payment_gateway
        self.max_attempts = settings.MAX_PAYMENT_RETRY_ATTEMPTS
        self.clock = clock

    async def list_failed_payments(self, user_id: str) -> List[Tuple[FailedPayment, Payment]]:
        """The user's failed payments under recovery, with their payment records."""
        pairs = []
        for failed in await self.payments.list_failed_payments_for_user(user_id):
            payment = await self.payments.get_payment(failed.payment_id)
            if payment is not None:
                pairs.append((failed, payment))
        return pairs

    async def retry_payment(
        self,
        user_id: str,
        payment_id: UUID,
        payment_method_id: Optional[str] = None
    ) -> RetryOutcome:
        """
        Retry a failed payment once, optionally with a new card.

        The attempt is counted before the processor is called. A declined retry
        is a normal outcome (success=False), not an error.

        Raises:
            NotFoundError: If no failed-payment record exists for the payment
            AuthorizationError: If the payment belongs to another user
            BusinessRuleViolationError: If the grace period has expired or the
                maximum number of retries was reached
        """
        now = self.clock()

        failed = await self.payments.get_failed_payment(payment_id)
        if failed is None:
            raise NotFoundError(
                "Failed payment record not found",
                resource_type="failed_payment",
                resource_id=str(payment_id),
            )
        if failed.user_id != user_id:
            logger.warning(f"User {user_id} attempted to retry payment {payment_id}")
            raise AuthorizationError(
                "You can only retry your own payments",
                resource_type="payment",
                resource_id=str(payment_id),
            )

        if failed.grace_status(now) == GraceStatus.EXPIRED:
            raise BusinessRuleViolationError(
                "Grace period has expired",
                rule="grace_period_expired",
                details={"grace_period_end": failed.grace_period_end.isoformat()},
            )
        if failed.retry_attempts >= self.max_attempts:
            raise BusinessRuleViolationError(
                "Maximum retry attempts exceeded",
                rule="max_retry_attempts",
                details={"max_attempts": self.max_attempts},
            )

        payment = await self.payments.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", resource_type="payment", resource_id=str(payment_id))

        attempts = await self.payments.claim_retry_attempt(failed.id, self.max_attempts)
        if attempts is None:
            raise BusinessRuleViolationError(
                "Maximum retry attempts exceeded",
                rule="max_retry_attempts",
                details={"max_attempts": self.max_attempts},
            )

        subscription = await self.subscriptions.get_by_id(payment.subscription_id)
        if subscription is None:
            raise NotFoundError(
                "Subscription not found",
                resource_type="subscription",
                resource_id=str(payment.subscription_id),
            )

        if payment_method_id:
            subscription.stripe_customer_id = await self.gateway.ensure_customer(
                user_id,
                subscription.billing_email,
                customer_id=subscription.stripe_customer_id,
                payment_method_id=payment_method_id,
            )
            subscription = await self.subscriptions.save(subscription)

        result = None
        if subscription.stripe_customer_id:
            result = await self.gateway.charge(
                subscription.stripe_customer_id,
                payment.amount,
                payment.currency,
                payment.description or "Subscription payment retry",
                idempotency_key=f"retry-{payment.id}-{attempts}",
                metadata={
                    "subscription_id": str(subscription.id),
                    "payment_id": str(payment.id),
                    "user_id": user_id,
                    "retry_attempt": str(attempts),
                },
            )

        retries_remaining = max(0, self.max_attempts - attempts)

        if result is None or not result.success:
            decline_code = result.decline_code if result else "no_payment_method"
            message = (result.message if result else None) or "Payment was declined"
            payment.mark_failed(decline_code, message, now)
            await self.payments.save_payment(payment)
            await self.payments.record_additional_failure(failed.id, now)
            logger.warning(
                f"Retry {attempts}/{self.max_attempts} of payment {payment.id} declined: {decline_code}"
            )
            return RetryOutcome(
                success=False,
                payment=payment,
                retry_attempts=attempts,
                retries_remaining=retries_remaining,
                error={"code": decline_code, "message": message},
            )

        subscription.renew(payment.amount, now)
        subscription = await self.subscriptions.save(subscription)

        payment.mark_succeeded(result.processor_reference, now)
        payment = await self.payments.save_payment(payment)
        await self.payments.delete_failed_payment(failed.id)
        await self.subscriptions.record_event(SubscriptionEvent(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            event_type=SubscriptionEventType.PAYMENT_RECOVERED,
            event_data={"payment_id": str(payment.id), "retry_attempt": attempts},
            created_at=now,
        ))
        log_billing_event(
            logger,
            SubscriptionEventType.PAYMENT_RECOVERED.value,
            subscription_id=str(subscription.id),
            user_id=subscription.user_id,
            payment_id=payment.id,
            retry_attempt=attempts,
        )

        return RetryOutcome(
            success=True,
            payment=payment,
            retry_attempts=attempts,
            retries_remaining=retries_remaining,
        )

    async def get_statistics(self) -> Dict[str, Any]:
        """Aggregate view of payments currently under recovery."""
        now = self.clock()
        open_failures = await self.payments.list_open_failed_payments()

        amount_at_risk = ZERO
        in_grace = 0
        exhausted = 0
        total_attempts = 0
        for failed in open_failures:
            total_attempts += failed.retry_attempts
            if failed.grace_status(now) == GraceStatus.ACTIVE:
                in_grace += 1
            if failed.retry_attempts >= self.max_attempts:
                exhausted += 1
            payment = await self.payments.get_payment(failed.payment_id)
            if payment is not None:
                amount_at_risk += payment.amount

        count = len(open_failures)
        return {
            "open_failed_payments": count,
            "in_grace_period": in_grace,
            "grace_expired": count - in_grace,
            "retries_exhausted": exhausted,
            "average_retry_attempts": round(total_attempts / count, 2) if count else 0.0,
            "amount_at_risk": Decimal(amount_at_risk),
        }
