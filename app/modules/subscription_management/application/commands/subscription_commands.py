# 📄 File: app/modules/subscription_management/application/commands/subscription_commands.py
# 🧭 Purpose (Layman Explanation):
# The "action requests" a contractor can make about their plan: start a trial, subscribe,
# move up or down a tier, or cancel.
#
# 🧪 Purpose (Technical Summary):
# CQRS command definitions for subscription write operations. Commands carry the
# authenticated user's id alongside the request fields and are immutable.
#
# 🔗 Dependencies:
# - pydantic for command validation
# - app.modules.subscription_management.domain.models.tier (tier and cycle enums)
#
# 🔄 Connected Modules / Calls From:
# - app.modules.subscription_management.application.handlers.command_handlers
# - app.modules.subscription_management.presentation.api.v1.subscriptions

"""
Subscription Commands

- StartTrialCommand: free trial of a paid tier
- SubscribeCommand: paid subscription, optionally with a promotional code
- ChangeTierCommand: upgrade (immediate, prorated) or downgrade (at period end)
- CancelSubscriptionCommand: cancel, keeping features until the paid period ends
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.subscription_management.domain.models.tier import BillingCycle, SubscriptionTier


class StartTrialCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None
    tier: SubscriptionTier


class SubscribeCommand(BaseModel):
    """Command for activating a paid subscription."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None
    tier: SubscriptionTier
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    promotional_code: Optional[str] = Field(default=None, max_length=50)
    payment_method_id: Optional[str] = Field(
        default=None,
        description="Card collected client-side, attached as the default card",
    )


class TierChangeDirection(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class ChangeTierCommand(BaseModel):
    """
    Command for moving a subscription to another tier.

    With ``preview`` set nothing is charged or saved; the proration quote is
    returned instead.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    subscription_id: UUID
    direction: TierChangeDirection
    new_tier: SubscriptionTier
    effective_date: Optional[datetime] = None
    preview: bool = False


class CancelSubscriptionCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    subscription_id: UUID
    reason: Optional[str] = Field(default=None, max_length=1000)
