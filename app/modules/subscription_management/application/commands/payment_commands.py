# 📄 File: app/modules/subscription_management/application/commands/payment_commands.py
# 🧭 Purpose (Layman Explanation):
# The "action requests" about money: retrying a failed payment, and (for admins) creating a
# new discount code.
#
# 🧪 Purpose (Technical Summary):
# CQRS command definitions for payment recovery and promotional code administration.
#
# 🔗 Dependencies:
# - pydantic, domain enums
#
# 🔄 Connected Modules / Calls From:
# - command_handlers.RetryPaymentCommandHandler, CreatePromotionalCodeCommandHandler

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.subscription_management.domain.models.promotional_code import DiscountType
from app.modules.subscription_management.domain.models.tier import SubscriptionTier


class RetryPaymentCommand(BaseModel):
    """Command for one user-initiated retry of a failed renewal payment."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    payment_id: UUID
    payment_method_id: Optional[str] = None


class CreatePromotionalCodeCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    tier_applicable: Optional[List[SubscriptionTier]] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True
