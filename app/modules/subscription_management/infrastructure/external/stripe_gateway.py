# 📄 File: app/modules/subscription_management/infrastructure/external/stripe_gateway.py
# 🧭 Purpose (Layman Explanation):
# Talks to Stripe, the card processor: it makes sure each contractor has a Stripe customer with a
# saved card, and charges that card when a plan starts, upgrades or renews.
# 🧪 Purpose (Technical Summary):
# PaymentGateway adapter over the Stripe REST API (form-encoded) using the shared aiohttp APIClient.
# Customer lookups may be retried; charges (confirmed off-session PaymentIntents) are sent once
# with an Idempotency-Key and a 402 answer becomes a declined ChargeResult.
# 🔗 Dependencies:
# - app.shared.infrastructure.external_apis.api_client (aiohttp + tenacity)
# - app.shared.config.settings (STRIPE_*)
# 🔄 Connected Modules / Calls From:
# - presentation dependencies, Celery subscription tasks

import logging
from decimal import Decimal
from typing import Dict, Optional

from app.shared.config.settings import Settings, get_settings
from app.shared.core.exceptions import ExternalServiceError
from app.shared.infrastructure.external_apis.api_client import APIClient, APIResponse
from app.shared.utils.money import to_minor_units
from app.modules.subscription_management.domain.models.payment import ChargeResult
from app.modules.subscription_management.domain.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

SERVICE_NAME = "stripe"


class StripePaymentGateway(PaymentGateway):
    """Stripe implementation of the payment gateway."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[APIClient] = None):
        self.settings = settings or get_settings()
        self.client = client or APIClient(
            base_url=self.settings.STRIPE_API_URL,
            api_name=SERVICE_NAME,
            default_headers={"Authorization": f"Bearer {self.settings.STRIPE_SECRET_KEY or ''}"},
            timeout=self.settings.STRIPE_TIMEOUT,
        )

    def _require_configured(self) -> None:
        if not self.settings.STRIPE_SECRET_KEY:
            raise ExternalServiceError(
                "Payment processor is not configured",
                service_name=SERVICE_NAME,
            )

    @staticmethod
    def _raise_for_error(response: APIResponse, operation: str) -> None:
        if response.ok:
            return
        error = response.data.get("error", {})
        logger.error(
            f"Stripe {operation} failed with {response.status}: "
            f"{error.get('type')} {error.get('code')} {error.get('message')}"
        )
        raise ExternalServiceError(
            f"Payment processor rejected {operation}",
            service_name=SERVICE_NAME,
            details={"status": response.status, "code": error.get("code")},
        )

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def ensure_customer(
        self,
        user_id: str,
        email: Optional[str],
        customer_id: Optional[str] = None,
        payment_method_id: Optional[str] = None
    ) -> str:
        self._require_configured()

        if not customer_id:
            form = {"metadata[user_id]": user_id}
            if email:
                form["email"] = email
            response = await self.client.post(
                "customers",
                form=form,
                headers={"Idempotency-Key": f"customer-{user_id}"},
            )
            self._raise_for_error(response, "customer creation")
            customer_id = response.data["id"]
            logger.info(f"Stripe customer {customer_id} created for user {user_id}")

        if payment_method_id:
            response = await self.client.post(
                f"payment_methods/{payment_method_id}/attach",
                form={"customer": customer_id},
            )
            self._raise_for_error(response, "card attachment")
            response = await self.client.post(
                f"customers/{customer_id}",
                form={"invoice_settings[default_payment_method]": payment_method_id},
            )
            self._raise_for_error(response, "default card update")
            logger.info(f"Default card updated for Stripe customer {customer_id}")

        return customer_id

    async def _default_payment_method(self, customer_id: str) -> Optional[str]:
        response = await self.client.get(f"customers/{customer_id}")
        self._raise_for_error(response, "customer lookup")
        settings = response.data.get("invoice_settings") or {}
        return settings.get("default_payment_method")

    # =========================================================================
    # CHARGES
    # =========================================================================

    async def charge(
        self,
        customer_id: str,
        amount: Decimal,
        currency: str,
        description: str,
        idempotency_key: str,
        metadata: Optional[Dict[str, str]] = None
    ) -> ChargeResult:
        self._require_configured()

        payment_method = await self._default_payment_method(customer_id)
        if not payment_method:
            logger.warning(f"Stripe customer {customer_id} has no default card")
            return ChargeResult(
                success=False,
                decline_code="no_payment_method",
                message="No card on file",
            )

        form = {
            "amount": str(to_minor_units(amount)),
            "currency": currency,
            "customer": customer_id,
            "payment_method": payment_method,
            "description": description,
            "confirm": "true",
            "off_session": "true",
        }
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = value

        response = await self.client.post(
            "payment_intents",
            form=form,
            headers={"Idempotency-Key": idempotency_key},
            retry=False,
        )

        if response.status == 402:
            error = response.data.get("error", {})
            intent = error.get("payment_intent") or {}
            return ChargeResult(
                success=False,
                processor_reference=intent.get("id"),
                decline_code=error.get("decline_code") or error.get("code") or "card_declined",
                message=error.get("message") or "Your card was declined",
            )
        self._raise_for_error(response, "charge")

        intent = response.data
        if intent.get("status") != "succeeded":
            # requires_action and friends cannot complete off-session
            return ChargeResult(
                success=False,
                processor_reference=intent.get("id"),
                decline_code="authentication_required",
                message=f"Payment needs attention ({intent.get('status')})",
            )

        return ChargeResult(success=True, processor_reference=intent.get("id"))
