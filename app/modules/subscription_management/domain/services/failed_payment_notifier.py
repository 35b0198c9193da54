# 📄 File: app/modules/subscription_management/domain/services/failed_payment_notifier.py
# 🧭 Purpose (Layman Explanation):
# Sends the "your payment failed" reminder emails a few days after a renewal charge fails,
# with a final warning on the last day before the plan ends.
# 🧪 Purpose (Technical Summary):
# Walks open failed payments, picks the reminder day that is due (default days 3, 6 and 7; a day
# that reaches the end of grace moves to its last day), sends one email through the EmailSender
# port and records the days covered so each goes out once.
# 🔗 Dependencies:
# - PaymentRepository, SubscriptionRepository, EmailSender, app.shared.config.settings
# 🔄 Connected Modules / Calls From:
# - app.background_jobs.subscription_tasks.send_failed_payment_notifications

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from app.shared.config.settings import Settings, get_settings
from app.shared.core.exceptions import ExternalServiceError
from app.modules.subscription_management.domain.models.payment import FailedPayment, Payment
from app.modules.subscription_management.domain.models.subscription import utcnow
from app.modules.subscription_management.domain.models.tier import get_tier_info
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.domain.services.email_sender import EmailSender

logger = logging.getLogger(__name__)


class FailedPaymentNotifier:
    """Reminder emails for payments in their grace period."""

    def __init__(
        self,
        payment_repository: PaymentRepository,
        subscription_repository: SubscriptionRepository,
        email_sender: EmailSender,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        settings = settings or get_settings()
        self.payments = payment_repository
        self.subscriptions = subscription_repository
        self.email_sender = email_sender
        self.schedule = settings.notification_days
        self.max_attempts = settings.MAX_PAYMENT_RETRY_ATTEMPTS
        self.billing_portal_url = settings.BILLING_PORTAL_URL
        self.clock = clock

    async def send_due_notifications(self) -> Dict[str, int]:
        now = self.clock()
        stats = {"sent": 0, "skipped": 0, "errors": 0}

        for failed in await self.payments.list_open_failed_payments():
            day = failed.due_notification_day(now, self.schedule)
            if day is None:
                continue

            subscription = await self.subscriptions.get_by_id(failed.subscription_id)
            payment = await self.payments.get_payment(failed.payment_id)
            if subscription is None or payment is None or not subscription.billing_email:
                logger.warning(f"No billing email for failed payment {failed.payment_id}; reminder skipped")
                stats["skipped"] += 1
                continue

            subject, html, text = self._compose(failed, payment, subscription.tier, day, now)
            try:
                await self.email_sender.send(subscription.billing_email, subject, html, text)
            except ExternalServiceError as e:
                logger.error(f"Reminder for failed payment {failed.payment_id} not sent: {e.message}")
                stats["errors"] += 1
                continue

            covered = [d for d in self.schedule if d <= day and d not in failed.notification_sent_days]
            await self.payments.mark_notifications_sent(failed.id, covered)
            logger.info(f"Day {day} reminder sent for failed payment {failed.payment_id}")
            stats["sent"] += 1

        return stats

    def _compose(self, failed: FailedPayment, payment: Payment, tier, day: int, now: datetime):
        tier_name = get_tier_info(tier).name
        days_left = failed.grace_days_remaining(now)
        retries_left = failed.retries_remaining(self.max_attempts)
        final_notice = day == self.schedule[-1]

        if final_notice:
            subject = f"Final notice: your {tier_name} plan ends soon"
        else:
            subject = f"Action needed: payment for your {tier_name} plan failed"

        text = (
            f"We could not collect {payment.amount} {payment.currency.upper()} for your {tier_name} plan.\n"
            f"Your features stay on for {days_left} more day(s). "
            f"You can retry the payment {retries_left} more time(s) or update your card at "
            f"{self.billing_portal_url}.\n"
        )
        if final_notice:
            text += "If the payment is not completed, your profile will move to the free Essential tier.\n"

        html = "".join(f"<p>{line}</p>" for line in text.strip().split("\n"))
        return subject, html, text
