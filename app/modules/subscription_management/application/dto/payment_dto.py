# 📄 File: app/modules/subscription_management/application/dto/payment_dto.py
# 🧭 Purpose (Layman Explanation):
# The "shape" of charges, failed charges and retry results when they are sent back to the app.
# 🧪 Purpose (Technical Summary):
# Response DTOs for billing history, failed payments under recovery (with grace status)
# and user-initiated retry outcomes.
# 🔗 Dependencies:
# - pydantic, app.shared.utils.money.JSONMoney, payment domain models
# 🔄 Connected Modules / Calls From:
# - application handlers, payments and subscriptions API routers

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel

from app.shared.utils.money import JSONMoney
from app.modules.subscription_management.domain.models.payment import (
    FailedPayment,
    Payment,
    RetryOutcome,
)


class PaymentDTO(BaseModel):
    id: UUID
    subscription_id: UUID
    amount: JSONMoney
    currency: str
    status: str
    kind: str
    description: Optional[str] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentDTO":
        return cls(
            id=payment.id,
            subscription_id=payment.subscription_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status.value,
            kind=payment.kind.value,
            description=payment.description,
            failure_code=payment.failure_code,
            failure_message=payment.failure_message,
            created_at=payment.created_at,
        )


class FailedPaymentDTO(BaseModel):
    """A failed payment with its grace period and retry allowance"""

    payment_id: UUID
    subscription_id: UUID
    amount: JSONMoney
    currency: str
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    failure_count: int
    retry_attempts: int
    retries_remaining: int
    can_retry: bool
    grace_status: str
    grace_period_end: datetime
    grace_days_remaining: int
    failed_at: datetime

    @classmethod
    def from_domain(
        cls,
        failed: FailedPayment,
        payment: Payment,
        now: datetime,
        max_attempts: int
    ) -> "FailedPaymentDTO":
        return cls(
            payment_id=payment.id,
            subscription_id=failed.subscription_id,
            amount=payment.amount,
            currency=payment.currency,
            failure_code=payment.failure_code,
            failure_message=payment.failure_message,
            failure_count=failed.failure_count,
            retry_attempts=failed.retry_attempts,
            retries_remaining=failed.retries_remaining(max_attempts),
            can_retry=failed.can_retry(now, max_attempts),
            grace_status=failed.grace_status(now).value,
            grace_period_end=failed.grace_period_end,
            grace_days_remaining=failed.grace_days_remaining(now),
            failed_at=failed.created_at,
        )


class RetryResultDTO(BaseModel):
    success: bool
    payment: PaymentDTO
    error: Optional[Dict[str, Any]] = None
    retry_attempts: int
    retries_remaining: int

    @classmethod
    def from_domain(cls, outcome: RetryOutcome) -> "RetryResultDTO":
        return cls(
            success=outcome.success,
            payment=PaymentDTO.from_domain(outcome.payment),
            error=outcome.error,
            retry_attempts=outcome.retry_attempts,
            retries_remaining=outcome.retries_remaining,
        )


class PaymentStatisticsDTO(BaseModel):
    open_failed_payments: int
    in_grace_period: int
    grace_expired: int
    retries_exhausted: int
    average_retry_attempts: float
    amount_at_risk: JSONMoney
