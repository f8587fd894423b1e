"""Initial schema: users, packages, purchases, payment sessions, ledger

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('referred_by_user_id', sa.Integer(), nullable=True),
        sa.Column('custodian_vault_id', sa.String(64), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['referred_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referred_by_user_id', 'users', ['referred_by_user_id'])

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(32), nullable=False),
        sa.Column('display_name', sa.String(64), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('price_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('commission_levels', sa.JSON(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'affiliate_statuses',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tier', sa.String(32), nullable=False),
        sa.Column('tier_depth_limit', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_user_id', sa.Integer(), nullable=False),
        sa.Column('referred_user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['referrer_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_user_id'),
    )
    op.create_index('ix_referrals_referrer_user_id', 'referrals', ['referrer_user_id'])

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tier', sa.String(32), nullable=False),
        sa.Column('amount_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('commission_base_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('is_upgrade', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('from_tier', sa.String(32), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('referred_by_user_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('amount_usd > 0', name='check_purchase_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_status', 'purchases', ['status'])

    op.create_table(
        'payment_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('tier', sa.String(32), nullable=False),
        sa.Column('asset_id', sa.String(32), nullable=False),
        sa.Column('price_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('quoted_crypto_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('exchange_rate_usd', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('deposit_address', sa.String(255), nullable=False),
        sa.Column('deposit_tag', sa.String(128), nullable=True),
        sa.Column('vault_account_id', sa.String(64), nullable=False),
        sa.Column(
            'status', sa.String(20), nullable=False, server_default='pending',
            comment='pending, confirming, partial, completed, failed, expired',
        ),
        sa.Column(
            'custodian_status', sa.String(64), nullable=True,
            comment='Raw provider status, informational',
        ),
        sa.Column('custodian_tx_id', sa.String(128), nullable=True),
        sa.Column('tx_hash', sa.String(255), nullable=True),
        sa.Column('amount_received_usd', sa.DECIMAL(18, 2), nullable=True),
        sa.Column('amount_received_crypto', sa.DECIMAL(18, 8), nullable=True),
        _timestamp('expires_at'),
        sa.Column('treasury_sweep_tx_id', sa.String(128), nullable=True),
        sa.Column(
            'treasury_sweep_status', sa.String(20), nullable=True,
            comment='submitted, completed, failed',
        ),
        sa.Column('treasury_sweep_error', sa.Text(), nullable=True),
        _timestamp('treasury_swept_at', nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purchase_id'),
    )
    op.create_index('ix_payment_sessions_user_id', 'payment_sessions', ['user_id'])
    op.create_index('ix_payment_sessions_deposit_address', 'payment_sessions', ['deposit_address'])
    op.create_index('ix_payment_sessions_custodian_tx_id', 'payment_sessions', ['custodian_tx_id'])
    op.create_index(
        'ix_payment_sessions_treasury_sweep_tx_id', 'payment_sessions', ['treasury_sweep_tx_id']
    )
    op.create_index('ix_payment_sessions_status_expires', 'payment_sessions', ['status', 'expires_at'])
    op.create_index('ix_payment_sessions_vault_status', 'payment_sessions', ['vault_account_id', 'status'])
    op.create_index('ix_payment_sessions_user_tier', 'payment_sessions', ['user_id', 'tier', 'asset_id'])

    op.create_table(
        'revenue_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('payment_session_id', sa.Integer(), nullable=False),
        sa.Column('custodian_tx_id', sa.String(128), nullable=False),
        sa.Column(
            'source', sa.String(32), nullable=False,
            comment='membership_purchase, membership_upgrade',
        ),
        sa.Column('amount_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('tier', sa.String(32), nullable=False),
        sa.Column('requires_review', sa.Boolean(), nullable=False, server_default='false'),
        _timestamp('settled_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['payment_session_id'], ['payment_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_session_id'),
        sa.UniqueConstraint('custodian_tx_id'),
    )
    op.create_index('ix_revenue_events_user_id', 'revenue_events', ['user_id'])

    op.create_table(
        'commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('beneficiary_user_id', sa.Integer(), nullable=False),
        sa.Column('source_revenue_event_id', sa.Integer(), nullable=False),
        sa.Column('layer', sa.Integer(), nullable=False),
        sa.Column('referred_user_id', sa.Integer(), nullable=False),
        sa.Column('amount_usd', sa.DECIMAL(18, 2), nullable=False),
        sa.Column('rate_percent', sa.DECIMAL(10, 6), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('layer >= 1 AND layer <= 8', name='check_commission_layer_range'),
        sa.ForeignKeyConstraint(['beneficiary_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_revenue_event_id'], ['revenue_events.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'beneficiary_user_id', 'source_revenue_event_id',
            name='uq_commission_beneficiary_event',
        ),
    )
    op.create_index('ix_commissions_beneficiary_user_id', 'commissions', ['beneficiary_user_id'])
    op.create_index('ix_commissions_source_revenue_event_id', 'commissions', ['source_revenue_event_id'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])

    op.create_table(
        'platform_activities',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(32), nullable=True),
        sa.Column('amount_usd', sa.DECIMAL(18, 2), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_platform_activities_user_id', 'platform_activities', ['user_id'])
    op.create_index(
        'ix_platform_activities_type_created', 'platform_activities', ['event_type', 'created_at']
    )


def downgrade() -> None:
    op.drop_table('platform_activities')
    op.drop_table('commissions')
    op.drop_table('revenue_events')
    op.drop_table('payment_sessions')
    op.drop_table('purchases')
    op.drop_table('referrals')
    op.drop_table('affiliate_statuses')
    op.drop_table('packages')
    op.drop_table('users')
