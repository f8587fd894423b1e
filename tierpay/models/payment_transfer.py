"""
Payment transfer model.

One row per completed inbound transfer counted toward a payment session.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.models.base import Base
from tierpay.models.types import MoneyType, UsdType, UTCDateTime, utcnow


class PaymentTransfer(Base):
    """
    Received transfer.

    The amount received by a session is the sum of its transfers. The unique
    `custodian_tx_id` keeps a redelivered transfer from being counted twice,
    whatever order the notifications arrive in.
    """

    __tablename__ = "payment_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    payment_session_id: Mapped[int] = mapped_column(
        ForeignKey("payment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    custodian_tx_id: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True
    )

    amount_usd: Mapped[Decimal | None] = mapped_column(UsdType, nullable=True)
    amount_crypto: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PaymentTransfer(id={self.id}, session={self.payment_session_id}, "
            f"tx={self.custodian_tx_id}, usd={self.amount_usd})>"
        )
