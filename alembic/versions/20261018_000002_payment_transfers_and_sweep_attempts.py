"""Received transfer ledger and treasury sweep attempts

Revision ID: 20261018_000002
Revises: 20261018_000001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261018_000002'
down_revision: Union[str, None] = '20261018_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payment_session_id', sa.Integer(), nullable=False),
        sa.Column('custodian_tx_id', sa.String(128), nullable=False),
        sa.Column('amount_usd', sa.DECIMAL(18, 2), nullable=True),
        sa.Column('amount_crypto', sa.DECIMAL(18, 8), nullable=True),
        sa.Column('tx_hash', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['payment_session_id'], ['payment_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('custodian_tx_id'),
    )
    op.create_index(
        'ix_payment_transfers_payment_session_id', 'payment_transfers', ['payment_session_id']
    )

    # Partial sessions keep their running total as a single counted transfer.
    op.execute(
        """
        INSERT INTO payment_transfers
            (payment_session_id, custodian_tx_id, amount_usd, amount_crypto, tx_hash, created_at)
        SELECT id, custodian_tx_id, amount_received_usd, amount_received_crypto, tx_hash, updated_at
        FROM payment_sessions
        WHERE status = 'partial' AND custodian_tx_id IS NOT NULL
        """
    )

    op.add_column(
        'payment_sessions',
        sa.Column('treasury_sweep_attempt', sa.Integer(), nullable=False, server_default='0'),
    )


def downgrade() -> None:
    op.drop_column('payment_sessions', 'treasury_sweep_attempt')
    op.drop_index('ix_payment_transfers_payment_session_id', table_name='payment_transfers')
    op.drop_table('payment_transfers')
