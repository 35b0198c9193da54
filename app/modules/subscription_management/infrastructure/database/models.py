# 📄 File: app/modules/subscription_management/infrastructure/database/models.py
# 🧭 Purpose (Layman Explanation):
# This file defines how subscriptions, discount codes, payments, failed payments and the history
# of plan changes are stored in the marketplace database.
#
# 🧪 Purpose (Technical Summary):
# SQLAlchemy ORM models mapping the subscription domain to PostgreSQL tables in the Supabase
# database, with check constraints mirroring the domain enums and indexes for the hot queries.
#
# 🔗 Dependencies:
# - SQLAlchemy ORM, PostgreSQL dialect types
# - app.shared.config.database (DatabaseBase)
#
# 🔄 Connected Modules / Calls From:
# - subscription_repository_impl.py, promotional_code_repository_impl.py, payment_repository_impl.py
# - migrations/env.py (autogenerate metadata)

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID as PG_UUID

from app.shared.config.database import DatabaseBase


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class SubscriptionModel(DatabaseBase):
    """
    SQLAlchemy model for contractor subscriptions.

    ``version`` backs optimistic concurrency: every update matches on it and
    increments it.
    """
    __tablename__ = "subscriptions"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(
        PG_UUID(as_uuid=False),
        nullable=False,
        index=True,
        comment="Supabase auth user id",
    )
    tier = Column(String(20), nullable=False, comment="essential/showcase/spotlight")
    status = Column(String(20), nullable=False, comment="active/inactive/cancelled/expired/trial")
    billing_cycle = Column(String(10), nullable=False, default="monthly", comment="monthly/yearly/2year")
    price = Column(Numeric(10, 2), nullable=False, default=0, comment="Price of the current period when billed")

    start_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    end_date = Column(DateTime(timezone=True), nullable=True)
    trial_end_date = Column(DateTime(timezone=True), nullable=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    pending_tier = Column(String(20), nullable=True, comment="Tier applied at the next billing boundary")
    pending_change_effective_date = Column(DateTime(timezone=True), nullable=True)

    promotional_code = Column(String(50), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    billing_email = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("tier IN ('essential', 'showcase', 'spotlight')", name="tier"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'cancelled', 'expired', 'trial')",
            name="status",
        ),
        CheckConstraint("billing_cycle IN ('monthly', 'yearly', '2year')", name="billing_cycle"),
        CheckConstraint("price >= 0", name="price_non_negative"),
        CheckConstraint("status <> 'trial' OR trial_end_date IS NOT NULL", name="trial_has_end_date"),
        Index("ix_subscriptions_status_period_end", "status", "current_period_end"),
    )


class SubscriptionEventModel(DatabaseBase):
    """Append-only audit trail of subscription transitions."""
    __tablename__ = "subscription_events"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    subscription_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(PG_UUID(as_uuid=False), nullable=False)
    event_type = Column(String(50), nullable=False)
    event_data = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


# =============================================================================
# PROMOTIONAL CODES
# =============================================================================

class PromotionalCodeModel(DatabaseBase):
    """SQLAlchemy model for promotional codes."""
    __tablename__ = "promotional_codes"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(50), nullable=False, unique=True, comment="Stored upper-case")
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False, comment="percentage/fixed_amount")
    discount_value = Column(Numeric(10, 2), nullable=False)
    tier_applicable = Column(ARRAY(String(20)), nullable=True, comment="NULL means every tier")
    usage_limit = Column(Integer, nullable=True, comment="NULL means unlimited")
    usage_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("discount_type IN ('percentage', 'fixed_amount')", name="discount_type"),
        CheckConstraint("discount_value > 0", name="discount_positive"),
        CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name="percentage_at_most_100",
        ),
        CheckConstraint("usage_count >= 0", name="usage_count_non_negative"),
    )


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentModel(DatabaseBase):
    """One charge attempt against the payment processor."""
    __tablename__ = "payments"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    subscription_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(PG_UUID(as_uuid=False), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, comment="pending/succeeded/failed")
    kind = Column(String(20), nullable=False, comment="subscription/proration/renewal")
    description = Column(String(255), nullable=True)
    processor_reference = Column(String(255), nullable=True, comment="Stripe PaymentIntent id")
    failure_code = Column(String(100), nullable=True)
    failure_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'succeeded', 'failed')", name="status"),
        CheckConstraint("kind IN ('subscription', 'proration', 'renewal')", name="kind"),
        CheckConstraint("amount >= 0", name="amount_non_negative"),
    )


class FailedPaymentModel(DatabaseBase):
    """A failed renewal payment under recovery."""
    __tablename__ = "failed_payments"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    payment_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    subscription_id = Column(
        PG_UUID(as_uuid=True),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(PG_UUID(as_uuid=False), nullable=False, index=True)
    failure_count = Column(Integer, nullable=False, default=1)
    retry_attempts = Column(Integer, nullable=False, default=0)
    grace_period_end = Column(DateTime(timezone=True), nullable=False)
    notification_sent_days = Column(ARRAY(Integer), nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("retry_attempts >= 0", name="retry_attempts_non_negative"),
        Index("ix_failed_payments_grace_period_end", "grace_period_end"),
    )
