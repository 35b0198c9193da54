"""
Shared fixtures.

The environment is configured before any application module is imported so
that the cached settings, limiter and security manager pick it up.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-0123456789")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from app.modules.subscription_management.domain.models.promotional_code import (  # noqa: E402
    DiscountType,
    PromotionalCode,
)
from app.modules.subscription_management.domain.models.subscription import (  # noqa: E402
    Subscription,
    SubscriptionStatus,
)
from app.modules.subscription_management.domain.models.tier import BillingCycle, SubscriptionTier  # noqa: E402
from app.modules.subscription_management.domain.services.failed_payment_notifier import (  # noqa: E402
    FailedPaymentNotifier,
)
from app.modules.subscription_management.domain.services.payment_retry_service import (  # noqa: E402
    PaymentRetryService,
)
from app.modules.subscription_management.domain.services.promotional_code_service import (  # noqa: E402
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (  # noqa: E402
    SubscriptionLifecycleService,
)
from tests.fakes import (  # noqa: E402
    FakeEmailSender,
    FakePaymentGateway,
    FakePaymentRepository,
    FakePromotionalCodeRepository,
    FakeSubscriptionRepository,
    FrozenClock,
)

USER_ID = "7d1f3c2a-4b5e-4f60-8a71-92b3c4d5e6f7"
OTHER_USER_ID = "0a9b8c7d-6e5f-4a3b-9c2d-1e0f9a8b7c6d"
USER_EMAIL = "contractor@example.com"


def welcome_code() -> PromotionalCode:
    return PromotionalCode(
        code="WELCOME10",
        description="10% off the first period",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
    )


def active_subscription(
    tier: SubscriptionTier,
    billing_cycle: BillingCycle,
    price: Decimal,
    started_at,
    user_id: str = USER_ID
) -> Subscription:
    """A paid subscription whose first period began at ``started_at``, with no card on file."""
    subscription = Subscription(
        user_id=user_id,
        tier=tier,
        status=SubscriptionStatus.INACTIVE,
        billing_cycle=billing_cycle,
        created_at=started_at,
        updated_at=started_at,
    )
    subscription.activate(tier, billing_cycle, price, started_at)
    return subscription


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def payment_repository() -> FakePaymentRepository:
    return FakePaymentRepository()


@pytest.fixture
def subscription_repository(payment_repository) -> FakeSubscriptionRepository:
    return FakeSubscriptionRepository(payment_repository)


@pytest.fixture
def promotional_code_repository() -> FakePromotionalCodeRepository:
    return FakePromotionalCodeRepository([welcome_code()])


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def promotional_code_service(promotional_code_repository) -> PromotionalCodeService:
    return PromotionalCodeService(promotional_code_repository)


@pytest.fixture
def lifecycle(
    subscription_repository,
    payment_repository,
    promotional_code_service,
    gateway,
    clock,
) -> SubscriptionLifecycleService:
    return SubscriptionLifecycleService(
        subscription_repository,
        payment_repository,
        promotional_code_service,
        gateway,
        clock=clock,
    )


@pytest.fixture
def retry_service(payment_repository, subscription_repository, gateway, clock) -> PaymentRetryService:
    return PaymentRetryService(payment_repository, subscription_repository, gateway, clock=clock)


@pytest.fixture
def notifier(payment_repository, subscription_repository, email_sender, clock) -> FailedPaymentNotifier:
    return FailedPaymentNotifier(payment_repository, subscription_repository, email_sender, clock=clock)


@pytest.fixture
async def failed_renewal(lifecycle, payment_repository, gateway, clock):
    """A showcase monthly subscription whose first renewal was declined."""
    subscription, _ = await lifecycle.subscribe(USER_ID, "showcase", "monthly", email=USER_EMAIL)
    clock.advance(days=30)
    gateway.decline_with = "card_declined"
    stats = await lifecycle.process_renewals()
    assert stats["failed"] == 1
    gateway.decline_with = None
    failed = next(iter(payment_repository.failed_payments.values()))
    return subscription, failed
