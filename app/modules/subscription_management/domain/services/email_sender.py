# 📄 File: app/modules/subscription_management/domain/services/email_sender.py
# 🧭 Purpose (Layman Explanation):
# The plug the reminder emails go through, whichever email service sits behind it.
# 🧪 Purpose (Technical Summary):
# Port to the transactional email service.
# 🔗 Dependencies:
# abc
# 🔄 Connected Modules / Calls From:
# failed_payment_notifier.py, infrastructure/external/sendgrid_email.py

from abc import ABC, abstractmethod


class EmailSender(ABC):
    """Sends one email; raises ExternalServiceError when delivery cannot be handed off."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_content: str, text_content: str) -> None:
        pass
