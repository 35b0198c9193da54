# 📄 File: app/modules/subscription_management/infrastructure/database/payment_repository_impl.py
# 🧭 Purpose (Layman Explanation):
# Stores every charge we make and keeps track of failed ones: how many retries were used,
# when the grace period ends and which reminder emails already went out.
# 🧪 Purpose (Technical Summary):
# SQLAlchemy implementation of PaymentRepository. The retry-attempt claim is a single
# UPDATE ... RETURNING guarded by the attempt cap.
# 🔗 Dependencies:
# SQLAlchemy async session, PaymentModel, FailedPaymentModel
# 🔄 Connected Modules / Calls From:
# SubscriptionLifecycleService, PaymentRetryService, FailedPaymentNotifier

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.exceptions import DatabaseError
from app.modules.subscription_management.domain.models.payment import FailedPayment, Payment
from app.modules.subscription_management.domain.repositories.payment_repository import PaymentRepository
from app.modules.subscription_management.infrastructure.database.models import (
    FailedPaymentModel,
    PaymentModel,
)

logger = logging.getLogger(__name__)


class PaymentRepositoryImpl(PaymentRepository):
    """
    SQLAlchemy implementation of payment repository.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # MAPPING
    # =========================================================================

    @staticmethod
    def _payment_to_domain(model: PaymentModel) -> Payment:
        return Payment(
            id=model.id,
            subscription_id=model.subscription_id,
            user_id=model.user_id,
            amount=model.amount,
            currency=model.currency,
            status=model.status,
            kind=model.kind,
            description=model.description,
            processor_reference=model.processor_reference,
            failure_code=model.failure_code,
            failure_message=model.failure_message,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _failed_to_domain(model: FailedPaymentModel) -> FailedPayment:
        return FailedPayment(
            id=model.id,
            payment_id=model.payment_id,
            subscription_id=model.subscription_id,
            user_id=model.user_id,
            failure_count=model.failure_count,
            retry_attempts=model.retry_attempts,
            grace_period_end=model.grace_period_end,
            notification_sent_days=list(model.notification_sent_days or []),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _failed_list(self, query) -> List[FailedPayment]:
        result = await self.session.execute(query)
        return [self._failed_to_domain(model) for model in result.scalars().all()]

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def add_payment(self, payment: Payment) -> Payment:
        try:
            self.session.add(PaymentModel(
                id=payment.id,
                subscription_id=payment.subscription_id,
                user_id=payment.user_id,
                amount=payment.amount,
                currency=payment.currency,
                status=payment.status.value,
                kind=payment.kind.value,
                description=payment.description,
                processor_reference=payment.processor_reference,
                failure_code=payment.failure_code,
                failure_message=payment.failure_message,
                created_at=payment.created_at,
                updated_at=payment.updated_at,
            ))
            await self.session.flush()
            return payment
        except SQLAlchemyError as e:
            logger.error(f"Error recording payment for subscription {payment.subscription_id}: {e}")
            raise DatabaseError("Failed to record payment", operation="insert") from e

    async def save_payment(self, payment: Payment) -> Payment:
        query = (
            update(PaymentModel)
            .where(PaymentModel.id == payment.id)
            .values(
                status=payment.status.value,
                processor_reference=payment.processor_reference,
                failure_code=payment.failure_code,
                failure_message=payment.failure_message,
                updated_at=payment.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(query)
            return payment
        except SQLAlchemyError as e:
            logger.error(f"Error updating payment {payment.id}: {e}")
            raise DatabaseError("Failed to update payment", operation="update") from e

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        try:
            model = await self.session.get(PaymentModel, payment_id)
            return self._payment_to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting payment {payment_id}: {e}")
            raise DatabaseError("Failed to load payment", operation="select") from e

    async def list_payments_for_user(self, user_id: str, limit: int = 50) -> List[Payment]:
        query = (
            select(PaymentModel)
            .where(PaymentModel.user_id == user_id)
            .order_by(PaymentModel.created_at.desc())
            .limit(limit)
        )
        try:
            result = await self.session.execute(query)
            return [self._payment_to_domain(model) for model in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing payments for user {user_id}: {e}")
            raise DatabaseError("Failed to load billing history", operation="select") from e

    # =========================================================================
    # FAILED PAYMENTS
    # =========================================================================

    async def add_failed_payment(self, failed_payment: FailedPayment) -> FailedPayment:
        try:
            self.session.add(FailedPaymentModel(
                id=failed_payment.id,
                payment_id=failed_payment.payment_id,
                subscription_id=failed_payment.subscription_id,
                user_id=failed_payment.user_id,
                failure_count=failed_payment.failure_count,
                retry_attempts=failed_payment.retry_attempts,
                grace_period_end=failed_payment.grace_period_end,
                notification_sent_days=list(failed_payment.notification_sent_days),
                created_at=failed_payment.created_at,
                updated_at=failed_payment.updated_at,
            ))
            await self.session.flush()
            return failed_payment
        except SQLAlchemyError as e:
            logger.error(f"Error opening failed payment for payment {failed_payment.payment_id}: {e}")
            raise DatabaseError("Failed to record failed payment", operation="insert") from e

    async def get_failed_payment(self, payment_id: UUID) -> Optional[FailedPayment]:
        query = select(FailedPaymentModel).where(FailedPaymentModel.payment_id == payment_id)
        try:
            result = await self.session.execute(query)
            model = result.scalar_one_or_none()
            return self._failed_to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting failed payment for payment {payment_id}: {e}")
            raise DatabaseError("Failed to load failed payment", operation="select") from e

    async def get_open_failed_payment_for_subscription(self, subscription_id: UUID) -> Optional[FailedPayment]:
        query = (
            select(FailedPaymentModel)
            .where(FailedPaymentModel.subscription_id == subscription_id)
            .order_by(FailedPaymentModel.created_at.desc())
            .limit(1)
        )
        try:
            result = await self.session.execute(query)
            model = result.scalars().first()
            return self._failed_to_domain(model) if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting failed payment for subscription {subscription_id}: {e}")
            raise DatabaseError("Failed to load failed payment", operation="select") from e

    async def list_failed_payments_for_user(self, user_id: str) -> List[FailedPayment]:
        query = (
            select(FailedPaymentModel)
            .where(FailedPaymentModel.user_id == user_id)
            .order_by(FailedPaymentModel.created_at.desc())
        )
        try:
            return await self._failed_list(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing failed payments for user {user_id}: {e}")
            raise DatabaseError("Failed to list failed payments", operation="select") from e

    async def list_open_failed_payments(self, limit: int = 500) -> List[FailedPayment]:
        query = select(FailedPaymentModel).order_by(FailedPaymentModel.created_at).limit(limit)
        try:
            return await self._failed_list(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing open failed payments: {e}")
            raise DatabaseError("Failed to list failed payments", operation="select") from e

    async def list_grace_expired(self, now: datetime, limit: int = 100) -> List[FailedPayment]:
        query = (
            select(FailedPaymentModel)
            .where(FailedPaymentModel.grace_period_end <= now)
            .order_by(FailedPaymentModel.grace_period_end)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        try:
            return await self._failed_list(query)
        except SQLAlchemyError as e:
            logger.error(f"Error listing grace-expired payments: {e}")
            raise DatabaseError("Failed to list grace-expired payments", operation="select") from e

    async def claim_retry_attempt(self, failed_payment_id: UUID, max_attempts: int) -> Optional[int]:
        query = (
            update(FailedPaymentModel)
            .where(
                FailedPaymentModel.id == failed_payment_id,
                FailedPaymentModel.retry_attempts < max_attempts,
            )
            .values(
                retry_attempts=FailedPaymentModel.retry_attempts + 1,
                updated_at=func.now(),
            )
            .returning(FailedPaymentModel.retry_attempts)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error claiming retry attempt on failed payment {failed_payment_id}: {e}")
            raise DatabaseError("Failed to claim retry attempt", operation="update") from e

    async def record_additional_failure(self, failed_payment_id: UUID, now: datetime) -> None:
        query = (
            update(FailedPaymentModel)
            .where(FailedPaymentModel.id == failed_payment_id)
            .values(failure_count=FailedPaymentModel.failure_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Error updating failed payment {failed_payment_id}: {e}")
            raise DatabaseError("Failed to update failed payment", operation="update") from e

    async def mark_notifications_sent(self, failed_payment_id: UUID, days: List[int]) -> None:
        if not days:
            return
        try:
            model = await self.session.get(FailedPaymentModel, failed_payment_id, with_for_update=True)
            if model is None:
                return
            model.notification_sent_days = sorted(set(model.notification_sent_days or []) | set(days))
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error recording reminders for failed payment {failed_payment_id}: {e}")
            raise DatabaseError("Failed to record reminders", operation="update") from e

    async def delete_failed_payment(self, failed_payment_id: UUID) -> None:
        query = delete(FailedPaymentModel).where(FailedPaymentModel.id == failed_payment_id)
        try:
            await self.session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Error deleting failed payment {failed_payment_id}: {e}")
            raise DatabaseError("Failed to clear failed payment", operation="delete") from e
