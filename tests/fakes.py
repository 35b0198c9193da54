"""
In-memory stand-ins for the repositories and external services.

Stored entities are copied on the way in and out so that tests see the same
isolation a database gives: changes only land through add/save.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from app.shared.core.exceptions import ConcurrentModificationError, ExternalServiceError
from app.modules.subscription_management.domain.models.events import SubscriptionEvent
from app.modules.subscription_management.domain.models.payment import (
    ChargeResult,
    FailedPayment,
    Payment,
)
from app.modules.subscription_management.domain.models.promotional_code import PromotionalCode
from app.modules.subscription_management.domain.models.subscription import Subscription
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.repositories.promotional_code_repository import (
    PromotionalCodeRepository,
)
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.domain.services.email_sender import EmailSender
from app.modules.subscription_management.domain.services.payment_gateway import PaymentGateway


def _copy(entity):
    return entity.model_copy(deep=True)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, hours: float = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now


# =============================================================================
# REPOSITORIES
# =============================================================================

class FakePaymentRepository(PaymentRepository):

    def __init__(self):
        self.payments: Dict[UUID, Payment] = {}
        self.failed_payments: Dict[UUID, FailedPayment] = {}

    async def add_payment(self, payment: Payment) -> Payment:
        self.payments[payment.id] = _copy(payment)
        return payment

    async def save_payment(self, payment: Payment) -> Payment:
        self.payments[payment.id] = _copy(payment)
        return payment

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        payment = self.payments.get(payment_id)
        return _copy(payment) if payment else None

    async def list_payments_for_user(self, user_id: str, limit: int = 50) -> List[Payment]:
        payments = [_copy(p) for p in self.payments.values() if p.user_id == user_id]
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments[:limit]

    async def add_failed_payment(self, failed_payment: FailedPayment) -> FailedPayment:
        self.failed_payments[failed_payment.id] = _copy(failed_payment)
        return failed_payment

    async def get_failed_payment(self, payment_id: UUID) -> Optional[FailedPayment]:
        for failed in self.failed_payments.values():
            if failed.payment_id == payment_id:
                return _copy(failed)
        return None

    async def get_open_failed_payment_for_subscription(self, subscription_id: UUID) -> Optional[FailedPayment]:
        matches = [f for f in self.failed_payments.values() if f.subscription_id == subscription_id]
        matches.sort(key=lambda f: f.created_at, reverse=True)
        return _copy(matches[0]) if matches else None

    async def list_failed_payments_for_user(self, user_id: str) -> List[FailedPayment]:
        matches = [_copy(f) for f in self.failed_payments.values() if f.user_id == user_id]
        matches.sort(key=lambda f: f.created_at, reverse=True)
        return matches

    async def list_open_failed_payments(self, limit: int = 500) -> List[FailedPayment]:
        matches = sorted(self.failed_payments.values(), key=lambda f: f.created_at)
        return [_copy(f) for f in matches[:limit]]

    async def list_grace_expired(self, now: datetime, limit: int = 100) -> List[FailedPayment]:
        matches = [f for f in self.failed_payments.values() if f.grace_period_end <= now]
        matches.sort(key=lambda f: f.grace_period_end)
        return [_copy(f) for f in matches[:limit]]

    async def claim_retry_attempt(self, failed_payment_id: UUID, max_attempts: int) -> Optional[int]:
        failed = self.failed_payments.get(failed_payment_id)
        if failed is None or failed.retry_attempts >= max_attempts:
            return None
        failed.retry_attempts += 1
        return failed.retry_attempts

    async def record_additional_failure(self, failed_payment_id: UUID, now: datetime) -> None:
        failed = self.failed_payments.get(failed_payment_id)
        if failed is not None:
            failed.failure_count += 1
            failed.updated_at = now

    async def mark_notifications_sent(self, failed_payment_id: UUID, days: List[int]) -> None:
        failed = self.failed_payments.get(failed_payment_id)
        if failed is not None and days:
            failed.notification_sent_days = sorted(set(failed.notification_sent_days) | set(days))

    async def delete_failed_payment(self, failed_payment_id: UUID) -> None:
        self.failed_payments.pop(failed_payment_id, None)


class FakeSubscriptionRepository(SubscriptionRepository):

    def __init__(self, payment_repository: Optional[FakePaymentRepository] = None):
        self.subscriptions: Dict[UUID, Subscription] = {}
        self.events: List[SubscriptionEvent] = []
        self.payment_repository = payment_repository
        # Simulates another writer having bumped the version first
        self.conflict_on_save = False

    async def add(self, subscription: Subscription) -> Subscription:
        self.subscriptions[subscription.id] = _copy(subscription)
        return subscription

    async def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        subscription = self.subscriptions.get(subscription_id)
        return _copy(subscription) if subscription else None

    async def list_by_user(self, user_id: str) -> List[Subscription]:
        matches = [_copy(s) for s in self.subscriptions.values() if s.user_id == user_id]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        return matches

    async def get_current_for_user(self, user_id: str, now: datetime) -> Optional[Subscription]:
        for subscription in await self.list_by_user(user_id):
            if subscription.is_current(now):
                return subscription
        return None

    async def has_used_trial(self, user_id: str) -> bool:
        return any(
            s.user_id == user_id and s.trial_end_date is not None
            for s in self.subscriptions.values()
        )

    async def save(self, subscription: Subscription) -> Subscription:
        stored = self.subscriptions.get(subscription.id)
        if self.conflict_on_save or stored is None or stored.version != subscription.version:
            raise ConcurrentModificationError(resource_id=str(subscription.id))
        subscription.version += 1
        self.subscriptions[subscription.id] = _copy(subscription)
        return subscription

    def _has_open_failure(self, subscription_id: UUID) -> bool:
        if self.payment_repository is None:
            return False
        return any(
            f.subscription_id == subscription_id
            for f in self.payment_repository.failed_payments.values()
        )

    async def list_due_for_renewal(self, now: datetime, limit: int = 100) -> List[Subscription]:
        matches = [
            s for s in self.subscriptions.values()
            if s.is_past_due(now) and not self._has_open_failure(s.id)
        ]
        matches.sort(key=lambda s: s.current_period_end)
        return [_copy(s) for s in matches[:limit]]

    async def list_lapsed_trials(self, now: datetime, limit: int = 100) -> List[Subscription]:
        matches = [
            s for s in self.subscriptions.values()
            if s.status.value == "trial" and s.trial_end_date <= now
        ]
        return [_copy(s) for s in matches[:limit]]

    async def list_ended_cancellations(self, now: datetime, limit: int = 100) -> List[Subscription]:
        matches = [
            s for s in self.subscriptions.values()
            if s.status.value == "cancelled" and s.end_date is not None and s.end_date <= now
        ]
        return [_copy(s) for s in matches[:limit]]

    async def record_event(self, event: SubscriptionEvent) -> None:
        self.events.append(_copy(event))

    async def list_events(self, subscription_id: UUID) -> List[SubscriptionEvent]:
        return [_copy(e) for e in self.events if e.subscription_id == subscription_id]

    def event_types(self, subscription_id: UUID) -> List[str]:
        return [e.event_type.value for e in self.events if e.subscription_id == subscription_id]


class FakePromotionalCodeRepository(PromotionalCodeRepository):

    def __init__(self, codes: Optional[List[PromotionalCode]] = None):
        self.codes: Dict[str, PromotionalCode] = {}
        for code in codes or []:
            self.codes[code.code] = _copy(code)

    async def get_by_code(self, code: str) -> Optional[PromotionalCode]:
        promo = self.codes.get(code.strip().upper())
        return _copy(promo) if promo else None

    async def list_all(self) -> List[PromotionalCode]:
        return [_copy(c) for c in sorted(self.codes.values(), key=lambda c: c.created_at, reverse=True)]

    async def add(self, promotional_code: PromotionalCode) -> PromotionalCode:
        self.codes[promotional_code.code] = _copy(promotional_code)
        return promotional_code

    async def redeem(self, code: str) -> bool:
        promo = self.codes.get(code)
        if promo is None or not promo.is_active or promo.is_exhausted():
            return False
        promo.usage_count += 1
        return True


# =============================================================================
# EXTERNAL SERVICES
# =============================================================================

class FakePaymentGateway(PaymentGateway):
    """Approves every charge unless ``decline_with`` is set."""

    def __init__(self):
        self.decline_with: Optional[str] = None
        self.charges: List[Dict] = []
        self.customers: List[Dict] = []

    async def ensure_customer(
        self,
        user_id: str,
        email: Optional[str],
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None
    ) -> str:
        customer = customer_id or f"cus_{user_id}"
        self.customers.append({
            "user_id": user_id,
            "email": email,
            "customer_id": customer,
            "payment_method_id": payment_method_id,
        })
        return customer

    async def charge(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> ChargeResult:
        self.charges.append({
            "customer_id": customer_id,
            "amount": amount,
            "currency": currency,
            "description": description,
            "idempotency_key": idempotency_key,
            "metadata": metadata or {},
        })
        if self.decline_with:
            return ChargeResult(success=False, decline_code=self.decline_with, message="Your card was declined.")
        return ChargeResult(success=True, processor_reference=f"pi_{len(self.charges)}")


class FakeEmailSender(EmailSender):

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, str]] = []

    async def send(self, to_email: str, subject: str, html_content: str, text_content: str) -> None:
        if self.fail:
            raise ExternalServiceError("Email delivery failed", service_name="sendgrid")
        self.sent.append({"to": to_email, "subject": subject, "html": html_content, "text": text_content})
