# 📄 File: app/modules/subscription_management/domain/services/payment_gateway.py
# 🧭 Purpose (Layman Explanation):
# The plug the billing rules use to talk to the card processor, without caring which one it is.
# 🧪 Purpose (Technical Summary):
# Port to the card payment processor used by the subscription services. Declines come back as
# ChargeResult(success=False); transport failures raise ExternalServiceError.
# 🔗 Dependencies:
# abc, payment.py (ChargeResult)
# 🔄 Connected Modules / Calls From:
# subscription_service.py, payment_retry_service.py, infrastructure/external/stripe_gateway.py

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional

from app.modules.subscription_management.domain.models.payment import ChargeResult


class PaymentGateway(ABC):
    """
    Charges a customer's saved card.

    Implementations must not retry a charge on their own: a declined or
    failed charge is reported back and recovery is user-initiated.
    """

    @abstractmethod
    async def ensure_customer(
        self,
        user_id: str,
        email: Optional[str],
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None
    ) -> str:
        """
        Return a processor customer for the user, creating one if needed and
        attaching ``payment_method_id`` as the default card when supplied.
        """

    @abstractmethod
    async def charge(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> ChargeResult:
        """Charge the customer's default card once."""
