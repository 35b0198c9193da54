"""Create subscription tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Create subscription tables"""

    # 1. Create subscriptions table
    op.create_table('subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False, comment='Supabase auth user id'),
        sa.Column('tier', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('billing_cycle', sa.String(10), nullable=False, server_default='monthly'),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pending_tier', sa.String(20), nullable=True),
        sa.Column('pending_change_effective_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('promotional_code', sa.String(50), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('billing_email', sa.String(255), nullable=True),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),

        sa.PrimaryKeyConstraint('id', name='pk_subscriptions'),
        sa.CheckConstraint("tier IN ('essential', 'showcase', 'spotlight')", name='ck_subscriptions_tier'),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'cancelled', 'expired', 'trial')",
            name='ck_subscriptions_status',
        ),
        sa.CheckConstraint("billing_cycle IN ('monthly', 'yearly', '2year')", name='ck_subscriptions_billing_cycle'),
        sa.CheckConstraint('price >= 0', name='ck_subscriptions_price_non_negative'),
        sa.CheckConstraint(
            "status <> 'trial' OR trial_end_date IS NOT NULL",
            name='ck_subscriptions_trial_has_end_date',
        ),
    )

    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_status_period_end', 'subscriptions', ['status', 'current_period_end'])

    # 2. Create subscription_events table
    op.create_table('subscription_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('subscription_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('event_data', postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),

        sa.PrimaryKeyConstraint('id', name='pk_subscription_events'),
        sa.ForeignKeyConstraint(
            ['subscription_id'], ['subscriptions.id'],
            name='fk_subscription_events_subscription_id_subscriptions',
            ondelete='CASCADE',
        ),
    )

    op.create_index('ix_subscription_events_subscription_id', 'subscription_events', ['subscription_id'])

    # 3. Create promotional_codes table
    op.create_table('promotional_codes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('code', sa.String(50), nullable=False, comment='Stored upper-case'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(20), nullable=False),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('tier_applicable', postgresql.ARRAY(sa.String(20)), nullable=True),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),

        sa.PrimaryKeyConstraint('id', name='pk_promotional_codes'),
        sa.UniqueConstraint('code', name='uq_promotional_codes_code'),
        sa.CheckConstraint(
            "discount_type IN ('percentage', 'fixed_amount')",
            name='ck_promotional_codes_discount_type',
        ),
        sa.CheckConstraint('discount_value > 0', name='ck_promotional_codes_discount_positive'),
        sa.CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name='ck_promotional_codes_percentage_at_most_100',
        ),
        sa.CheckConstraint('usage_count >= 0', name='ck_promotional_codes_usage_count_non_negative'),
    )

    # 4. Create payments table
    op.create_table('payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('subscription_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('processor_reference', sa.String(255), nullable=True, comment='Stripe PaymentIntent id'),
        sa.Column('failure_code', sa.String(100), nullable=True),
        sa.Column('failure_message', sa.Text(), nullable=True),
        *_timestamps(),

        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sa.ForeignKeyConstraint(
            ['subscription_id'], ['subscriptions.id'],
            name='fk_payments_subscription_id_subscriptions',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint("status IN ('pending', 'succeeded', 'failed')", name='ck_payments_status'),
        sa.CheckConstraint("kind IN ('subscription', 'proration', 'renewal')", name='ck_payments_kind'),
        sa.CheckConstraint('amount >= 0', name='ck_payments_amount_non_negative'),
    )

    op.create_index('ix_payments_subscription_id', 'payments', ['subscription_id'])
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])

    # 5. Create failed_payments table
    op.create_table('failed_payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('payment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('subscription_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('failure_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('retry_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grace_period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            'notification_sent_days',
            postgresql.ARRAY(sa.Integer()),
            nullable=False,
            server_default=sa.text("'{}'::integer[]"),
        ),
        *_timestamps(),

        sa.PrimaryKeyConstraint('id', name='pk_failed_payments'),
        sa.UniqueConstraint('payment_id', name='uq_failed_payments_payment_id'),
        sa.ForeignKeyConstraint(
            ['payment_id'], ['payments.id'],
            name='fk_failed_payments_payment_id_payments',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['subscription_id'], ['subscriptions.id'],
            name='fk_failed_payments_subscription_id_subscriptions',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('retry_attempts >= 0', name='ck_failed_payments_retry_attempts_non_negative'),
    )

    op.create_index('ix_failed_payments_subscription_id', 'failed_payments', ['subscription_id'])
    op.create_index('ix_failed_payments_user_id', 'failed_payments', ['user_id'])
    op.create_index('ix_failed_payments_grace_period_end', 'failed_payments', ['grace_period_end'])


def downgrade() -> None:
    """Drop subscription tables"""
    op.drop_table('failed_payments')
    op.drop_table('payments')
    op.drop_table('promotional_codes')
    op.drop_table('subscription_events')
    op.drop_table('subscriptions')
