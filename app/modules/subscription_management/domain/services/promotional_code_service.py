# 📄 File: app/modules/subscription_management/domain/services/promotional_code_service.py
# 🧭 Purpose (Layman Explanation):
# Checks whether a discount code can be used for a plan right now, and lets admins create codes.
# 🧪 Purpose (Technical Summary):
# Read-only promotional code validation (existence, active flag, expiry, usage cap, tier list)
# plus admin creation/listing. Redemption is done by the lifecycle service at subscription time.
# 🔗 Dependencies:
# - PromotionalCodeRepository
# 🔄 Connected Modules / Calls From:
# - PricingService, SubscriptionLifecycleService, promotional code endpoints

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from app.shared.core.exceptions import BusinessRuleViolationError
from app.modules.subscription_management.domain.models.promotional_code import (
    PromoCodeValidation,
    PromoRejectionReason,
    PromotionalCode,
)
from app.modules.subscription_management.domain.models.tier import SubscriptionTier
from app.modules.subscription_management.domain.repositories.promotional_code_repository import (
    PromotionalCodeRepository,
)

logger = logging.getLogger(__name__)


class PromotionalCodeService:
    """Validation and administration of promotional codes."""

    def __init__(self, promotional_code_repository: PromotionalCodeRepository):
        self.repository = promotional_code_repository

    async def find_applicable(
        self,
        code: str,
        tier: SubscriptionTier,
        now: datetime
    ) -> Tuple[PromoCodeValidation, Optional[PromotionalCode]]:
        """
        Validate ``code`` for ``tier`` and return the code when it applies.

        Returns:
            (validation, promotional_code) where promotional_code is None
            unless validation.valid is True.
        """
        normalized = code.strip().upper()
        promo = await self.repository.get_by_code(normalized)
        if promo is None:
            logger.info(f"Promotional code {normalized} not found")
            return PromoCodeValidation(
                valid=False, code=normalized, reason=PromoRejectionReason.NOT_FOUND
            ), None

        reason = promo.rejection_reason(tier, now)
        if reason is not None:
            logger.info(f"Promotional code {normalized} rejected for {tier.value}: {reason.value}")
            return PromoCodeValidation(valid=False, code=normalized, reason=reason), None

        return PromoCodeValidation(
            valid=True,
            code=promo.code,
            discount_type=promo.discount_type,
            discount_value=promo.discount_value,
        ), promo

    async def validate_code(self, code: str, tier: SubscriptionTier, now: datetime) -> PromoCodeValidation:
        validation, _ = await self.find_applicable(code, tier, now)
        return validation

    async def create_code(self, promotional_code: PromotionalCode) -> PromotionalCode:
        """
        Store a new code.

        Raises:
            BusinessRuleViolationError: If a code with the same text exists
        """
        if await self.repository.get_by_code(promotional_code.code) is not None:
            raise BusinessRuleViolationError(
                f"Promotional code {promotional_code.code} already exists",
                rule="unique_promotional_code",
            )
        created = await self.repository.add(promotional_code)
        logger.info(f"Promotional code {created.code} created")
        return created

    async def redeem(self, promotional_code: PromotionalCode) -> bool:
        """Count one use of the code; False if the usage limit was reached meanwhile."""
        redeemed = await self.repository.redeem(promotional_code.code)
        if redeemed:
            logger.info(f"Promotional code {promotional_code.code} redeemed")
        return redeemed

    async def list_codes(self) -> List[PromotionalCode]:
        return await self.repository.list_all()
