# 📄 File: app/modules/subscription_management/application/handlers/command_handlers.py
# 🧭 Purpose (Layman Explanation):
# The "action processors" that carry out plan changes, payment retries and code creation by
# handing the request to the business rules and packaging the answer for the app.
#
# 🧪 Purpose (Technical Summary):
# CQRS command handlers delegating to the domain services and mapping results to DTOs.
# Transactions belong to the request session; handlers never commit or swallow errors.
#
# 🔗 Dependencies:
# - application commands and DTOs
# - SubscriptionLifecycleService, PaymentRetryService, PromotionalCodeService
#
# 🔄 Connected Modules / Calls From:
# - app.modules.subscription_management.presentation.api.v1 (routers)

__all__ = [
    "StartTrialCommandHandler",
    "SubscribeCommandHandler",
    "ChangeTierCommandHandler",
    "CancelSubscriptionCommandHandler",
    "RetryPaymentCommandHandler",
    "CreatePromotionalCodeCommandHandler",
]

import logging

from app.modules.subscription_management.application.commands.payment_commands import (
    CreatePromotionalCodeCommand,
    RetryPaymentCommand,
)
from app.modules.subscription_management.application.commands.subscription_commands import (
    CancelSubscriptionCommand,
    ChangeTierCommand,
    StartTrialCommand,
    SubscribeCommand,
    TierChangeDirection,
)
from app.modules.subscription_management.application.dto.payment_dto import PaymentDTO, RetryResultDTO
from app.modules.subscription_management.application.dto.subscription_dto import (
    PromotionalCodeDTO,
    ProrationDTO,
    SubscribeResultDTO,
    SubscriptionDTO,
    TierChangeDTO,
    TrialStatusDTO,
)
from app.modules.subscription_management.domain.models.promotional_code import PromotionalCode
from app.modules.subscription_management.domain.services.payment_retry_service import PaymentRetryService
from app.modules.subscription_management.domain.services.promotional_code_service import (
    PromotionalCodeService,
)
from app.modules.subscription_management.domain.services.subscription_service import (
    SubscriptionLifecycleService,
)

logger = logging.getLogger(__name__)


class StartTrialCommandHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, command: StartTrialCommand) -> TrialStatusDTO:
        logger.info(f"Starting {command.tier.value} trial for user {command.user_id}")
        subscription = await self._subscription_service.start_trial(
            command.user_id, command.tier, command.email
        )
        return TrialStatusDTO.from_domain(subscription, self._subscription_service.clock())


class SubscribeCommandHandler:
    """
    Handles paid subscription: promotional code, first charge and activation.
    """

    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, command: SubscribeCommand) -> SubscribeResultDTO:
        logger.info(
            f"User {command.user_id} subscribing to {command.tier.value} ({command.billing_cycle.value})"
        )
        subscription, payment = await self._subscription_service.subscribe(
            command.user_id,
            command.tier,
            command.billing_cycle,
            promotional_code=command.promotional_code,
            email=command.email,
            payment_method_id=command.payment_method_id,
        )
        return SubscribeResultDTO(
            subscription=SubscriptionDTO.from_domain(subscription, self._subscription_service.clock()),
            payment=PaymentDTO.from_domain(payment) if payment else None,
        )


class ChangeTierCommandHandler:
    """
    Handles upgrades and downgrades, including previews.
    """

    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, command: ChangeTierCommand) -> TierChangeDTO:
        if command.direction == TierChangeDirection.UPGRADE:
            change = self._subscription_service.upgrade
        else:
            change = self._subscription_service.downgrade

        result = await change(
            command.user_id,
            command.subscription_id,
            command.new_tier,
            preview=command.preview,
            effective_date=command.effective_date,
        )
        return TierChangeDTO(
            subscription=SubscriptionDTO.from_domain(result.subscription, self._subscription_service.clock()),
            proration=ProrationDTO.from_domain(result.proration),
            applied=result.applied,
            payment=PaymentDTO.from_domain(result.payment) if result.payment else None,
        )


class CancelSubscriptionCommandHandler:
    def __init__(self, subscription_service: SubscriptionLifecycleService):
        self._subscription_service = subscription_service

    async def handle(self, command: CancelSubscriptionCommand) -> SubscriptionDTO:
        subscription = await self._subscription_service.cancel(
            command.user_id, command.subscription_id, command.reason
        )
        logger.info(f"Subscription {subscription.id} cancelled by user {command.user_id}")
        return SubscriptionDTO.from_domain(subscription, self._subscription_service.clock())


class RetryPaymentCommandHandler:
    def __init__(self, retry_service: PaymentRetryService):
        self._retry_service = retry_service

    async def handle(self, command: RetryPaymentCommand) -> RetryResultDTO:
        outcome = await self._retry_service.retry_payment(
            command.user_id, command.payment_id, command.payment_method_id
        )
        return RetryResultDTO.from_domain(outcome)


class CreatePromotionalCodeCommandHandler:
    def __init__(self, promotional_code_service: PromotionalCodeService):
        self._promotional_code_service = promotional_code_service

    async def handle(self, command: CreatePromotionalCodeCommand) -> PromotionalCodeDTO:
        promo = await self._promotional_code_service.create_code(
            PromotionalCode(**command.model_dump())
        )
        return PromotionalCodeDTO.from_domain(promo)
