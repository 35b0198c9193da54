# 📄 File: app/modules/subscription_management/domain/repositories/subscription_repository.py
# 🧭 Purpose (Layman Explanation):
# Defines what subscription-related database operations our app can perform,
# like finding a contractor's current plan, saving a change, or listing plans due for renewal.
# 🧪 Purpose (Technical Summary):
# Abstract repository interface for subscription persistence with optimistic concurrency
# (version-checked saves), lifecycle sweeps and the append-only audit trail.
# 🔗 Dependencies:
# - abc (Abstract Base Classes)
# - Subscription and SubscriptionEvent domain models
# 🔄 Connected Modules / Calls From:
# - SubscriptionLifecycleService, PaymentRetryService (business logic)
# - SubscriptionRepositoryImpl (concrete implementation)

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.modules.subscription_management.domain.models.events import SubscriptionEvent
from app.modules.subscription_management.domain.models.subscription import Subscription


class SubscriptionRepository(ABC):
    """
    Abstract repository interface for subscription data access operations.
    """

    @abstractmethod
    async def add(self, subscription: Subscription) -> Subscription:
        """Insert a new subscription."""
        pass

    @abstractmethod
    async def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        """Get subscription by ID."""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Subscription]:
        """All of a user's subscriptions, newest first."""
        pass

    @abstractmethod
    async def get_current_for_user(self, user_id: str, now: datetime) -> Optional[Subscription]:
        """
        Newest subscription that grants features at ``now``: active, trial
        before its end date, or cancelled before its end date.
        """
        pass

    @abstractmethod
    async def has_used_trial(self, user_id: str) -> bool:
        """Whether the user ever started a trial."""
        pass

    @abstractmethod
    async def save(self, subscription: Subscription) -> Subscription:
        """
        Persist changes made to ``subscription``.

        The write only succeeds if the stored version still equals
        ``subscription.version``; the version is then incremented.

        Raises:
            ConcurrentModificationError: If the row changed since it was read
        """
        pass

    @abstractmethod
    async def list_due_for_renewal(self, now: datetime, limit: int = 100) -> List[Subscription]:
        """Active subscriptions whose current period has ended."""
        pass

    @abstractmethod
    async def list_lapsed_trials(self, now: datetime, limit: int = 100) -> List[Subscription]:
        """Trials whose trial end date has passed."""
        pass

    @abstractmethod
    async def list_ended_cancellations(self, now: datetime, limit: int = 100) -> List[Subscription]:
        """Cancelled subscriptions whose paid period has ended."""
        pass

    @abstractmethod
    async def record_event(self, event: SubscriptionEvent) -> None:
        """Append a lifecycle event to the audit trail."""
        pass

    @abstractmethod
    async def list_events(self, subscription_id: UUID) -> List[SubscriptionEvent]:
        """Audit trail of one subscription, oldest first."""
        pass
