"""
Payment session model.

One session per purchase attempt. Settlement state is driven by custodian
notifications; sweep columns are written by the treasury sweeper.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tierpay.models.base import Base
from tierpay.models.enums import PaymentSessionStatus
from tierpay.models.types import MoneyType, UsdType, UTCDateTime, utcnow


if TYPE_CHECKING:
    from tierpay.models.purchase import Purchase


class PaymentSession(Base):
    """
    Crypto payment session.

    Lifecycle:
    - pending: deposit address issued, waiting for funds
    - confirming: transfer seen, awaiting confirmations
    - partial: funds received below the expected amount
    - completed / failed / expired: terminal, never changes again

    `quoted_crypto_amount` is locked at creation and never recomputed.
    """

    __tablename__ = "payment_sessions"
    __table_args__ = (
        Index("ix_payment_sessions_status_expires", "status", "expires_at"),
        Index("ix_payment_sessions_vault_status", "vault_account_id", "status"),
        Index("ix_payment_sessions_user_tier", "user_id", "tier", "asset_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    purchase_id: Mapped[int] = mapped_column(
        ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    tier: Mapped[str] = mapped_column(String(32), nullable=False)
    asset_id: Mapped[str] = mapped_column(String(32), nullable=False)

    # Quote (immutable)
    price_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)
    quoted_crypto_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    exchange_rate_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Deposit target
    deposit_address: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )
    deposit_tag: Mapped[str | None] = mapped_column(String(128), nullable=True)
    vault_account_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Settlement state
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentSessionStatus.PENDING.value,
        comment="pending, confirming, partial, completed, failed, expired",
    )
    custodian_status: Mapped[str | None] = mapped_column(
        String(64), nullable=True, comment="Raw provider status, informational"
    )
    custodian_tx_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    tx_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount_received_usd: Mapped[Decimal | None] = mapped_column(
        UsdType, nullable=True
    )
    amount_received_crypto: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Treasury sweep
    treasury_sweep_tx_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    treasury_sweep_status: Mapped[str | None] = mapped_column(
        String(20), nullable=True, comment="submitted, completed, failed"
    )
    treasury_sweep_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    treasury_sweep_attempt: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    treasury_swept_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    purchase: Mapped["Purchase"] = relationship("Purchase", lazy="selectin")

    @property
    def session_status(self) -> PaymentSessionStatus:
        """Status as an enum member."""
        return PaymentSessionStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        """True once settlement state can no longer change."""
        return self.session_status.is_terminal

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PaymentSession(id={self.id}, user_id={self.user_id}, "
            f"tier={self.tier}, asset={self.asset_id}, status={self.status})>"
        )
