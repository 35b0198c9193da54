# 📄 File: app/modules/subscription_management/domain/models/events.py
# 🧭 Purpose (Layman Explanation):
# A diary of everything that happened to a plan: trial started, upgraded, renewed, payment failed.
# 🧪 Purpose (Technical Summary):
# Append-only audit trail entries for subscription lifecycle transitions, stored in
# subscription_events and served by the subscription history endpoint.
# 🔗 Dependencies:
# pydantic, uuid
# 🔄 Connected Modules / Calls From:
# subscription_service.py, payment_retry_service.py, subscription repository

from datetime import datetime
from enum import Enum
from typing import Any, Dict
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .subscription import utcnow


class SubscriptionEventType(str, Enum):
    TRIAL_STARTED = "trial_started"
    TRIAL_ENDED = "trial_ended"
    SUBSCRIBED = "subscribed"
    UPGRADED = "upgraded"
    DOWNGRADE_SCHEDULED = "downgrade_scheduled"
    DOWNGRADED = "downgraded"
    CANCELLED = "cancelled"
    RENEWED = "renewed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_RECOVERED = "payment_recovered"
    EXPIRED = "expired"


class SubscriptionEvent(BaseModel):
    """Append-only record of one transition"""

    id: UUID = Field(default_factory=uuid4)
    subscription_id: UUID
    user_id: str
    event_type: SubscriptionEventType
    event_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
