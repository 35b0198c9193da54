# 📄 File: app/modules/subscription_management/domain/models/payment.py
# 🧭 Purpose (Layman Explanation):
# Records every charge we attempt for a subscription, and for charges that failed, how long the
# contractor has to fix their card and how many retries they have left.
# 🧪 Purpose (Technical Summary):
# Payment and FailedPayment entities, the gateway charge result value object,
# grace-period status derivation and the user-initiated retry outcome.
# 🔗 Dependencies:
# pydantic, datetime, decimal, uuid
# 🔄 Connected Modules / Calls From:
# subscription_service.py, payment_retry_service.py, failed_payment_notifier.py,
# payment repository, payments API

import math
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .subscription import utcnow


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentKind(str, Enum):
    """What a charge was for"""
    SUBSCRIPTION = "subscription"
    PRORATION = "proration"
    RENEWAL = "renewal"


class Payment(BaseModel):
    """One charge attempt against the payment processor"""

    id: UUID = Field(default_factory=uuid4)
    subscription_id: UUID
    user_id: str
    amount: Decimal
    currency: str = "usd"
    status: PaymentStatus = PaymentStatus.PENDING
    kind: PaymentKind
    description: Optional[str] = None
    processor_reference: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def mark_succeeded(self, processor_reference: Optional[str], now: datetime) -> None:
        self.status = PaymentStatus.SUCCEEDED
        self.processor_reference = processor_reference
        self.failure_code = None
        self.failure_message = None
        self.updated_at = now

    def mark_failed(self, failure_code: Optional[str], failure_message: Optional[str], now: datetime) -> None:
        self.status = PaymentStatus.FAILED
        self.failure_code = failure_code
        self.failure_message = failure_message
        self.updated_at = now


class ChargeResult(BaseModel):
    """Answer from the payment processor for one charge"""

    success: bool
    processor_reference: Optional[str] = None
    decline_code: Optional[str] = None
    message: Optional[str] = None


class GraceStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class FailedPayment(BaseModel):
    """
    A failed charge under recovery.

    The subscription keeps its features until ``grace_period_end``; the user
    may retry the charge up to the configured number of times before then.
    """

    id: UUID = Field(default_factory=uuid4)
    payment_id: UUID
    subscription_id: UUID
    user_id: str
    failure_count: int = 1
    retry_attempts: int = 0
    grace_period_end: datetime
    notification_sent_days: List[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def open(
        cls,
        payment: Payment,
        now: datetime,
        grace_days: int
    ) -> "FailedPayment":
        return cls(
            payment_id=payment.id,
            subscription_id=payment.subscription_id,
            user_id=payment.user_id,
            grace_period_end=now + timedelta(days=grace_days),
            created_at=now,
            updated_at=now,
        )

    def grace_status(self, now: datetime) -> GraceStatus:
        return GraceStatus.ACTIVE if self.grace_period_end > now else GraceStatus.EXPIRED

    def grace_days_remaining(self, now: datetime) -> int:
        return max(0, math.ceil((self.grace_period_end - now).total_seconds() / 86400))

    def retries_remaining(self, max_attempts: int) -> int:
        return max(0, max_attempts - self.retry_attempts)

    def can_retry(self, now: datetime, max_attempts: int) -> bool:
        return self.grace_status(now) == GraceStatus.ACTIVE and self.retry_attempts < max_attempts

    def days_since_failure(self, now: datetime) -> int:
        return max(0, (now - self.created_at).days)

    def last_notice_day(self) -> int:
        """Last whole day after the failure that still falls inside the grace period."""
        grace_length = (self.grace_period_end - self.created_at).total_seconds() / 86400
        return max(0, math.ceil(grace_length) - 1)

    def due_notification_day(self, now: datetime, schedule: List[int]) -> Optional[int]:
        """
        Latest scheduled reminder day reached but not yet sent.

        Days at or past the end of the grace period are brought forward to its
        last day, so the final notice arrives while the plan is still on.
        Nothing is due once the grace period has ended.
        """
        if self.grace_status(now) == GraceStatus.EXPIRED:
            return None
        elapsed = self.days_since_failure(now)
        last_day = self.last_notice_day()
        due = [
            day for day in schedule
            if min(day, last_day) <= elapsed and day not in self.notification_sent_days
        ]
        return max(due) if due else None


class RetryOutcome(BaseModel):
    """Result of a user-initiated payment retry"""

    success: bool
    payment: Payment
    retry_attempts: int
    retries_remaining: int
    error: Optional[Dict[str, Any]] = None
