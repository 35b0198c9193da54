from datetime import timedelta
from decimal import Decimal

import pydantic
import pytest

from app.shared.core.exceptions import BusinessRuleViolationError
from app.modules.subscription_management.domain.models.promotional_code import (
    DiscountType,
    PromoRejectionReason,
    PromotionalCode,
)
from app.modules.subscription_management.domain.models.tier import SubscriptionTier


def test_code_is_normalized_to_upper_case():
    promo = PromotionalCode(code="  summer ", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("5"))
    assert promo.code == "SUMMER"


@pytest.mark.parametrize("discount_type,value", [
    (DiscountType.PERCENTAGE, Decimal("120")),
    (DiscountType.PERCENTAGE, Decimal("0")),
    (DiscountType.FIXED_AMOUNT, Decimal("-5")),
])
def test_invalid_discount_values_are_rejected(discount_type, value):
    with pytest.raises(pydantic.ValidationError):
        PromotionalCode(code="BAD", discount_type=discount_type, discount_value=value)


async def test_unknown_code_is_not_found(promotional_code_service, clock):
    validation = await promotional_code_service.validate_code("MISSING", SubscriptionTier.SHOWCASE, clock())
    assert validation.valid is False
    assert validation.reason == PromoRejectionReason.NOT_FOUND


async def test_valid_code_reports_its_discount(promotional_code_service, clock):
    validation = await promotional_code_service.validate_code("welcome10", SubscriptionTier.SPOTLIGHT, clock())
    assert validation.valid is True
    assert validation.code == "WELCOME10"
    assert validation.discount_type == DiscountType.PERCENTAGE
    assert validation.discount_value == Decimal("10")
    assert validation.reason is None


@pytest.mark.parametrize("overrides,reason", [
    ({"is_active": False}, PromoRejectionReason.INACTIVE),
    ({"usage_limit": 2, "usage_count": 2}, PromoRejectionReason.USAGE_LIMIT_REACHED),
    ({"tier_applicable": [SubscriptionTier.SPOTLIGHT]}, PromoRejectionReason.TIER_NOT_APPLICABLE),
])
async def test_rejection_reasons(promotional_code_service, promotional_code_repository, clock, overrides, reason):
    await promotional_code_repository.add(PromotionalCode(
        code="LIMITED",
        discount_type=DiscountType.FIXED_AMOUNT,
        discount_value=Decimal("5"),
        **overrides,
    ))
    validation = await promotional_code_service.validate_code("LIMITED", SubscriptionTier.SHOWCASE, clock())
    assert validation.valid is False
    assert validation.reason == reason


async def test_expired_code_is_rejected(promotional_code_service, promotional_code_repository, clock):
    await promotional_code_repository.add(PromotionalCode(
        code="OLD",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("20"),
        expires_at=clock() - timedelta(days=1),
    ))
    validation = await promotional_code_service.validate_code("OLD", SubscriptionTier.SHOWCASE, clock())
    assert validation.reason == PromoRejectionReason.EXPIRED


async def test_create_code_rejects_duplicates(promotional_code_service):
    duplicate = PromotionalCode(code="welcome10", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("15"))
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await promotional_code_service.create_code(duplicate)
    assert exc_info.value.details["rule"] == "unique_promotional_code"


async def test_redeem_stops_at_usage_limit(promotional_code_service, promotional_code_repository):
    promo = await promotional_code_service.create_code(PromotionalCode(
        code="ONCE",
        discount_type=DiscountType.FIXED_AMOUNT,
        discount_value=Decimal("10"),
        usage_limit=1,
    ))
    assert await promotional_code_service.redeem(promo) is True
    assert await promotional_code_service.redeem(promo) is False
    assert promotional_code_repository.codes["ONCE"].usage_count == 1


async def test_list_codes(promotional_code_service):
    codes = await promotional_code_service.list_codes()
    assert [code.code for code in codes] == ["WELCOME10"]
