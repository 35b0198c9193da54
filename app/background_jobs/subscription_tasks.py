# 📄 File: app/background_jobs/subscription_tasks.py
#
# 🧭 Purpose (Layman Explanation):
# The scheduled chores of the billing system: charge the plans that are due, switch off trials and
# plans whose time is up, and email contractors whose payment failed.
#
# 🧪 Purpose (Technical Summary):
# Celery tasks driven by the beat schedule in celery_config. Each task runs one async sweep in its
# own event loop and database transaction, then disposes the engine so pooled connections never
# outlive the loop that opened them.
#
# 🔗 Dependencies:
# - celery (shared_task), asyncio
# - app.shared.infrastructure.database.session.session_scope
# - subscription repositories, services, Stripe gateway and SendGrid sender
#
# 🔄 Connected Modules / Calls From:
# - celery_config.CeleryConfig.beat_schedule
# - Operators (manual trigger via celery call)

import asyncio
import logging
from typing import Awaitable, Callable, Dict

from celery import shared_task

from app.shared.core.exceptions import DatabaseError, TransactionError
from app.shared.infrastructure.database.connection import close_database
from app.shared.infrastructure.database.session import session_scope
from app.shared.utils.logging import setup_logging
from app.modules.subscription_management.domain.services.failed_payment_notifier import FailedPaymentNotifier
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (
    SubscriptionLifecycleService,
)
from app.modules.subscription_management.infrastructure.database.payment_repository_impl import (
    PaymentRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.database.promotional_code_repository_impl import (
    PromotionalCodeRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.database.subscription_repository_impl import (
    SubscriptionRepositoryImpl,
)
from app.modules.subscription_management.infrastructure.external.sendgrid_email import SendGridEmailSender
from app.modules.subscription_management.infrastructure.external.stripe_gateway import StripePaymentGateway

logger = logging.getLogger(__name__)

# Failures worth another attempt; per-subscription processor errors are handled inside the sweeps.
RETRYABLE_EXCEPTIONS = (DatabaseError, TransactionError, ConnectionError, TimeoutError)

SWEEP_BATCH_SIZE = 100


def _run(sweep: Callable[[], Awaitable[Dict[str, int]]]) -> Dict[str, int]:
    """Run one async sweep to completion on a fresh event loop."""

    async def runner() -> Dict[str, int]:
        try:
            return await sweep()
        finally:
            await close_database()

    setup_logging()
    return asyncio.run(runner())


async def _process_renewals() -> Dict[str, int]:
    gateway = StripePaymentGateway()
    try:
        async with session_scope() as session:
            service = SubscriptionLifecycleService(
                SubscriptionRepositoryImpl(session),
                PaymentRepositoryImpl(session),
                PromotionalCodeService(PromotionalCodeRepositoryImpl(session)),
                gateway,
            )
            return await service.process_renewals(limit=SWEEP_BATCH_SIZE)
    finally:
        await gateway.client.close()


async def _expire_lapsed() -> Dict[str, int]:
    # No charges happen here, so the gateway is never called
    gateway = StripePaymentGateway()
    try:
        async with session_scope() as session:
            service = SubscriptionLifecycleService(
                SubscriptionRepositoryImpl(session),
                PaymentRepositoryImpl(session),
                PromotionalCodeService(PromotionalCodeRepositoryImpl(session)),
                gateway,
            )
            return await service.expire_lapsed(limit=SWEEP_BATCH_SIZE)
    finally:
        await gateway.client.close()


async def _send_failed_payment_notifications() -> Dict[str, int]:
    sender = SendGridEmailSender()
    try:
        async with session_scope() as session:
            notifier = FailedPaymentNotifier(
                PaymentRepositoryImpl(session),
                SubscriptionRepositoryImpl(session),
                sender,
            )
            return await notifier.send_due_notifications()
    finally:
        await sender.client.close()


# =============================================================================
# SCHEDULED TASKS
# =============================================================================

@shared_task(
    bind=True,
    name="subscriptions.process_renewals",
    autoretry_for=RETRYABLE_EXCEPTIONS,
    max_retries=3,
    retry_backoff=60,
    retry_backoff_max=600,
    acks_late=True,
)
def process_renewals(self) -> Dict[str, int]:
    """
    Charge every active subscription whose billing period has ended.

    Subscriptions with an open failed payment are left to the retry flow.
    Charges carry a per-period idempotency key, so a retried task never
    bills the same period twice.
    """
    logger.info(f"Starting renewal sweep (task_id={self.request.id})")
    stats = _run(_process_renewals)
    logger.info(f"Renewal sweep completed: {stats}")
    return stats


@shared_task(
    bind=True,
    name="subscriptions.expire_lapsed",
    autoretry_for=RETRYABLE_EXCEPTIONS,
    max_retries=3,
    retry_backoff=60,
    retry_backoff_max=600,
    acks_late=True,
)
def expire_lapsed(self) -> Dict[str, int]:
    """End lapsed trials, finished cancellations and unpaid grace periods."""
    logger.info(f"Starting expiry sweep (task_id={self.request.id})")
    stats = _run(_expire_lapsed)
    logger.info(f"Expiry sweep completed: {stats}")
    return stats


@shared_task(
    bind=True,
    name="subscriptions.send_failed_payment_notifications",
    autoretry_for=RETRYABLE_EXCEPTIONS,
    max_retries=3,
    retry_backoff=30,
    retry_backoff_max=300,
    acks_late=True,
)
def send_failed_payment_notifications(self) -> Dict[str, int]:
    logger.info(f"Sending failed payment reminders (task_id={self.request.id})")
    stats = _run(_send_failed_payment_notifications)
    logger.info(f"Failed payment reminders done: {stats}")
    return stats
