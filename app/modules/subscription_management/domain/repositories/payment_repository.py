# 📄 File: app/modules/subscription_management/domain/repositories/payment_repository.py
# 🧭 Purpose (Layman Explanation):
# Defines how charges and failed charges are saved and found again, for billing history,
# reminders and retries.
# 🧪 Purpose (Technical Summary):
# Abstract repository for Payment and FailedPayment records, including the atomic
# retry-attempt claim that keeps concurrent retries under the cap.
# 🔗 Dependencies:
# - abc, Payment / FailedPayment domain models
# 🔄 Connected Modules / Calls From:
# - SubscriptionLifecycleService, PaymentRetryService, FailedPaymentNotifier
# - PaymentRepositoryImpl

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.modules.subscription_management.domain.models.payment import FailedPayment, Payment


class PaymentRepository(ABC):
    """
    Abstract repository interface for payments and failed-payment recovery.
    """

    # Payments

    @abstractmethod
    async def add_payment(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def save_payment(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        pass

    @abstractmethod
    async def list_payments_for_user(self, user_id: str, limit: int = 50) -> List[Payment]:
        """Billing history, newest first."""
        pass

    # Failed payments

    @abstractmethod
    async def add_failed_payment(self, failed_payment: FailedPayment) -> FailedPayment:
        pass

    @abstractmethod
    async def get_failed_payment(self, payment_id: UUID) -> Optional[FailedPayment]:
        """Failed-payment record for a payment, if one is open."""
        pass

    @abstractmethod
    async def get_open_failed_payment_for_subscription(self, subscription_id: UUID) -> Optional[FailedPayment]:
        pass

    @abstractmethod
    async def list_failed_payments_for_user(self, user_id: str) -> List[FailedPayment]:
        pass

    @abstractmethod
    async def list_open_failed_payments(self, limit: int = 500) -> List[FailedPayment]:
        """Every failed payment still under recovery, oldest first."""
        pass

    @abstractmethod
    async def list_grace_expired(self, now: datetime, limit: int = 100) -> List[FailedPayment]:
        pass

    @abstractmethod
    async def claim_retry_attempt(self, failed_payment_id: UUID, max_attempts: int) -> Optional[int]:
        """
        Atomically increment ``retry_attempts`` if it is below ``max_attempts``.

        Returns:
            The new attempt count, or None if the cap was already reached.
        """
        pass

    @abstractmethod
    async def record_additional_failure(self, failed_payment_id: UUID, now: datetime) -> None:
        """Increment ``failure_count`` after a retry is declined."""
        pass

    @abstractmethod
    async def mark_notifications_sent(self, failed_payment_id: UUID, days: List[int]) -> None:
        """Add ``days`` to the reminder days already sent."""
        pass

    @abstractmethod
    async def delete_failed_payment(self, failed_payment_id: UUID) -> None:
        """Clear a recovered (or abandoned) failed payment."""
        pass
