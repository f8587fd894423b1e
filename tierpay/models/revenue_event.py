"""
Revenue event model.

Immutable fact that qualifying revenue settled for a user. Created exactly
once per completed payment session.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.models.base import Base
from tierpay.models.types import UsdType, UTCDateTime, utcnow


class RevenueEvent(Base):
    """
    Settled revenue.

    Unique on both `custodian_tx_id` and `payment_session_id`; these two
    constraints are the idempotency backstop for concurrent completions.
    """

    __tablename__ = "revenue_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    purchase_id: Mapped[int] = mapped_column(
        ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False
    )

    payment_session_id: Mapped[int] = mapped_column(
        ForeignKey("payment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    custodian_tx_id: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True
    )

    source: Mapped[str] = mapped_column(
        String(32), nullable=False, comment="membership_purchase, membership_upgrade"
    )

    # Commission base
    amount_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)

    tier: Mapped[str] = mapped_column(String(32), nullable=False)

    requires_review: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    settled_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<RevenueEvent(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount_usd}, tx={self.custodian_tx_id})>"
        )
