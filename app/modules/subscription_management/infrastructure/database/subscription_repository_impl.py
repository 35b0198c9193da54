# 📄 File: app/modules/subscription_management/infrastructure/database/subscription_repository_impl.py
# 🧭 Purpose (Layman Explanation):
# This file handles all the actual database work for subscriptions - saving them, finding a
# contractor's current plan, and picking out plans that need renewing or have run out.
# 🧪 Purpose (Technical Summary):
# SQLAlchemy-based implementation of SubscriptionRepository with version-checked updates,
# row locking (SKIP LOCKED) for the renewal sweep and the audit event trail.
# 🔗 Dependencies:
# SQLAlchemy async session, app.shared.core.exceptions, subscription ORM models
# 🔄 Connected Modules / Calls From:
# Subscription presentation dependencies, Celery subscription tasks

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.exceptions import ConcurrentModificationError, DatabaseError
from app.modules.subscription_management.domain.models.events import SubscriptionEvent
from app.modules.subscription_management.domain.models.subscription import Subscription, SubscriptionStatus
from app.modules.subscription_management.domain.repositories.subscription_repository import (
    SubscriptionRepository,
)
from app.modules.subscription_management.infrastructure.database.models import (
    FailedPaymentModel,
    SubscriptionEventModel,
    SubscriptionModel,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id", "user_id", "tier", "status", "billing_cycle", "price",
    "start_date", "end_date", "trial_end_date",
    "current_period_start", "current_period_end",
    "pending_tier", "pending_change_effective_date",
    "promotional_code", "cancelled_at", "cancellation_reason",
    "billing_email", "stripe_customer_id",
    "version", "created_at", "updated_at",
)


class SubscriptionRepositoryImpl(SubscriptionRepository):
    """
    SQLAlchemy implementation of subscription repository.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session
        """
        self.session = session

    # =========================================================================
    # MAPPING
    # =========================================================================

    @staticmethod
    def _to_domain(model: SubscriptionModel) -> Subscription:
        return Subscription.model_validate({column: getattr(model, column) for column in _COLUMNS})

    @staticmethod
    def _to_values(subscription: Subscription) -> Dict[str, Any]:
        data = subscription.model_dump()
        for key in ("tier", "status", "billing_cycle", "pending_tier"):
            if data.get(key) is not None:
                data[key] = getattr(subscription, key).value
        return {column: data[column] for column in _COLUMNS}

    async def _fetch_all(self, query) -> List[Subscription]:
        result = await self.session.execute(query)
        return [self._to_domain(model) for model in result.scalars().all()]

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add(self, subscription: Subscription) -> Subscription:
        try:
            self.session.add(SubscriptionModel(**self._to_values(subscription)))
            await self.session.flush()
            logger.info(f"Subscription {subscription.id} created for user {subscription.user_id}")
            return subscription
        except SQLAlchemyError as e:
            logger.error(f"Error creating subscription for user {subscription.user_id}: {e}")
            raise DatabaseError("Failed to create subscription", operation="insert") from e

    async def save(self, subscription: Subscription) -> Subscription:
        values = self._to_values(subscription)
        for column in ("id", "user_id", "created_at"):
            values.pop(column)
        values["version"] = subscription.version + 1

        query = (
            update(SubscriptionModel)
            .where(
                SubscriptionModel.id == subscription.id,
                SubscriptionModel.version == subscription.version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Error updating subscription {subscription.id}: {e}")
            raise DatabaseError("Failed to update subscription", operation="update") from e

        if result.rowcount == 0:
            logger.warning(
                f"Version conflict on subscription {subscription.id} (expected v{subscription.version})"
            )
            raise ConcurrentModificationError(resource_id=str(subscription.id))

        subscription.version += 1
        return subscription

    async def record_event(self, event: SubscriptionEvent) -> None:
        try:
            self.session.add(SubscriptionEventModel(
                id=event.id,
                subscription_id=event.subscription_id,
                user_id=event.user_id,
                event_type=event.event_type.value,
                event_data=event.event_data,
                created_at=event.created_at,
            ))
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error recording {event.event_type.value} for subscription {event.subscription_id}: {e}")
            raise DatabaseError("Failed to record subscription event", operation="insert") from e

    # =========================================================================
    # READS
    # =========================================================================

    async def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        try:
            model = await self.session.get(SubscriptionModel, subscription_id)
            return self._to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting subscription {subscription_id}: {e}")
            raise DatabaseError("Failed to load subscription", operation="select") from e

    async def list_by_user(self, user_id: str) -> List[Subscription]:
        query = (
            select(SubscriptionModel)
            .where(SubscriptionModel.user_id == user_id)
            .order_by(SubscriptionModel.created_at.desc())
        )
        try:
            return await self._fetch_all(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing subscriptions for user {user_id}: {e}")
            raise DatabaseError("Failed to list subscriptions", operation="select") from e

    async def get_current_for_user(self, user_id: str, now: datetime) -> Optional[Subscription]:
        query = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == user_id,
                or_(
                    SubscriptionModel.status == SubscriptionStatus.ACTIVE.value,
                    and_(
                        SubscriptionModel.status == SubscriptionStatus.TRIAL.value,
                        SubscriptionModel.trial_end_date > now,
                    ),
                    and_(
                        SubscriptionModel.status == SubscriptionStatus.CANCELLED.value,
                        SubscriptionModel.end_date > now,
                    ),
                ),
            )
            .order_by(SubscriptionModel.created_at.desc())
            .limit(1)
        )
        try:
            result = await self.session.execute(query)
            model = result.scalars().first()
            return self._to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting current subscription for user {user_id}: {e}")
            raise DatabaseError("Failed to load current subscription", operation="select") from e

    async def has_used_trial(self, user_id: str) -> bool:
        query = select(
            exists().where(
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.trial_end_date.is_not(None),
            )
        )
        try:
            result = await self.session.execute(query)
            return bool(result.scalar())
        except SQLAlchemyError as e:
            logger.error(f"Error checking trial history for user {user_id}: {e}")
            raise DatabaseError("Failed to check trial history", operation="select") from e

    async def list_due_for_renewal(self, now: datetime, limit: int = 100) -> List[Subscription]:
        open_failure = exists().where(FailedPaymentModel.subscription_id == SubscriptionModel.id)
        query = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.status == SubscriptionStatus.ACTIVE.value,
                SubscriptionModel.current_period_end <= now,
                ~open_failure,
            )
            .order_by(SubscriptionModel.current_period_end)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        try:
            return await self._fetch_all(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing subscriptions due for renewal: {e}")
            raise DatabaseError("Failed to list renewals", operation="select") from e

    async def list_lapsed_trials(self, now: datetime, limit: int = 100) -> List[Subscription]:
        query = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.status == SubscriptionStatus.TRIAL.value,
                SubscriptionModel.trial_end_date <= now,
            )
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        try:
            return await self._fetch_all(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing lapsed trials: {e}")
            raise DatabaseError("Failed to list lapsed trials", operation="select") from e

    async def list_ended_cancellations(self, now: datetime, limit: int = 100) -> List[Subscription]:
        query = (
            select(SubscriptionModel)
            .where(
                SubscriptionModel.status == SubscriptionStatus.CANCELLED.value,
                SubscriptionModel.end_date <= now,
            )
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        try:
            return await self._fetch_all(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing ended cancellations: {e}")
            raise DatabaseError("Failed to list ended cancellations", operation="select") from e

    async def list_events(self, subscription_id: UUID) -> List[SubscriptionEvent]:
        query = (
            select(SubscriptionEventModel)
            .where(SubscriptionEventModel.subscription_id == subscription_id)
            .order_by(SubscriptionEventModel.created_at)
        )
        try:
            result = await self.session.execute(query)
            return [
                SubscriptionEvent(
                    id=model.id,
                    subscription_id=model.subscription_id,
                    user_id=model.user_id,
                    event_type=model.event_type,
                    event_data=model.event_data or {},
                    created_at=model.created_at,
                )
                for model in result.scalars().all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error listing events for subscription {subscription_id}: {e}")
            raise DatabaseError("Failed to list subscription events", operation="select") from e
