from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from app.shared.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    NotFoundError,
)
from app.modules.subscription_management.domain.models.payment import PaymentStatus
from tests.conftest import OTHER_USER_ID, USER_ID


async def test_successful_retry_recovers_subscription(failed_renewal, retry_service, payment_repository,
                                                      subscription_repository, gateway):
    subscription, failed = failed_renewal

    outcome = await retry_service.retry_payment(USER_ID, failed.payment_id)

    assert outcome.success is True
    assert outcome.error is None
    assert outcome.retry_attempts == 1
    assert outcome.retries_remaining == 2
    assert outcome.payment.status == PaymentStatus.SUCCEEDED
    assert payment_repository.failed_payments == {}

    recovered = await subscription_repository.get_by_id(subscription.id)
    assert recovered.current_period_start == subscription.current_period_end
    assert recovered.current_period_end == subscription.current_period_end + timedelta(days=30)
    assert "payment_recovered" in subscription_repository.event_types(subscription.id)
    assert gateway.charges[-1]["idempotency_key"] == f"retry-{failed.payment_id}-1"


async def test_declined_retry_is_reported_not_raised(failed_renewal, retry_service, payment_repository, gateway):
    _, failed = failed_renewal
    gateway.decline_with = "card_declined"

    outcome = await retry_service.retry_payment(USER_ID, failed.payment_id)

    assert outcome.success is False
    assert outcome.error["code"] == "card_declined"
    assert outcome.retry_attempts == 1
    assert outcome.retries_remaining == 2
    stored = payment_repository.failed_payments[failed.id]
    assert stored.retry_attempts == 1
    assert stored.failure_count == 2


async def test_retries_stop_at_maximum(failed_renewal, retry_service, gateway):
    _, failed = failed_renewal
    gateway.decline_with = "card_declined"

    for attempt in range(1, 4):
        outcome = await retry_service.retry_payment(USER_ID, failed.payment_id)
        assert outcome.retry_attempts == attempt
    assert outcome.retries_remaining == 0

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await retry_service.retry_payment(USER_ID, failed.payment_id)
    assert exc_info.value.details["rule"] == "max_retry_attempts"
    # First period, declined renewal and three retries
    assert len(gateway.charges) == 5


async def test_retry_after_grace_period_is_refused(failed_renewal, retry_service, clock):
    _, failed = failed_renewal
    clock.advance(days=8)

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await retry_service.retry_payment(USER_ID, failed.payment_id)
    assert exc_info.value.details["rule"] == "grace_period_expired"


async def test_retry_of_someone_elses_payment(failed_renewal, retry_service):
    _, failed = failed_renewal
    with pytest.raises(AuthorizationError):
        await retry_service.retry_payment(OTHER_USER_ID, failed.payment_id)


async def test_retry_of_unknown_payment(retry_service):
    with pytest.raises(NotFoundError):
        await retry_service.retry_payment(USER_ID, uuid4())


async def test_retry_with_new_card_attaches_it_first(failed_renewal, retry_service, gateway):
    _, failed = failed_renewal

    outcome = await retry_service.retry_payment(USER_ID, failed.payment_id, payment_method_id="pm_new_card")

    assert outcome.success is True
    assert gateway.customers[-1]["payment_method_id"] == "pm_new_card"
    assert gateway.customers[-1]["customer_id"] == f"cus_{USER_ID}"


async def test_list_failed_payments(failed_renewal, retry_service):
    _, failed = failed_renewal

    pairs = await retry_service.list_failed_payments(USER_ID)

    assert len(pairs) == 1
    listed, payment = pairs[0]
    assert listed.id == failed.id
    assert payment.amount == Decimal("29.00")
    assert await retry_service.list_failed_payments(OTHER_USER_ID) == []


async def test_statistics(failed_renewal, retry_service, gateway):
    _, failed = failed_renewal
    gateway.decline_with = "card_declined"
    await retry_service.retry_payment(USER_ID, failed.payment_id)

    stats = await retry_service.get_statistics()

    assert stats["open_failed_payments"] == 1
    assert stats["in_grace_period"] == 1
    assert stats["grace_expired"] == 0
    assert stats["retries_exhausted"] == 0
    assert stats["average_retry_attempts"] == 1.0
    assert stats["amount_at_risk"] == Decimal("29.00")
