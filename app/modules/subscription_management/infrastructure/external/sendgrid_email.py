# 📄 File: app/modules/subscription_management/infrastructure/external/sendgrid_email.py
# 🧭 Purpose (Layman Explanation):
# Sends billing emails (like failed payment reminders) through SendGrid.
# 🧪 Purpose (Technical Summary):
# EmailSender adapter for the SendGrid v3 mail/send endpoint over the shared APIClient;
# transient failures are retried with backoff.
# 🔗 Dependencies:
# - app.shared.infrastructure.external_apis.api_client, app.shared.config.settings
# 🔄 Connected Modules / Calls From:
# - FailedPaymentNotifier (Celery notification task)

import logging
from typing import Optional

from app.shared.config.settings import Settings, get_settings
from app.shared.core.exceptions import ExternalServiceError
from app.shared.infrastructure.external_apis.api_client import APIClient
from app.modules.subscription_management.domain.services.email_sender import EmailSender

logger = logging.getLogger(__name__)


class SendGridEmailSender(EmailSender):
    """SendGrid implementation of the email sender."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[APIClient] = None):
        self.settings = settings or get_settings()
        self.client = client or APIClient(
            base_url=self.settings.SENDGRID_API_URL,
            api_name="sendgrid",
            default_headers={"Authorization": f"Bearer {self.settings.SENDGRID_API_KEY or ''}"},
        )

    async def send(self, to_email: str, subject: str, html_content: str, text_content: str) -> None:
        if not self.settings.SENDGRID_API_KEY:
            raise ExternalServiceError("Email service is not configured", service_name="sendgrid")

        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self.settings.FROM_EMAIL, "name": self.settings.FROM_NAME},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text_content},
                {"type": "text/html", "value": html_content},
            ],
        }
        response = await self.client.post("mail/send", json=payload)
        if not response.ok:
            logger.error(f"SendGrid rejected email to {to_email}: {response.status} {response.data}")
            raise ExternalServiceError(
                "Email service rejected the message",
                service_name="sendgrid",
                details={"status": response.status},
            )
        logger.info(f"Email '{subject}' sent to {to_email}")
