"""
Commission model.

One row per beneficiary per revenue event.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.config.constants import MAX_COMMISSION_DEPTH
from tierpay.models.base import Base
from tierpay.models.enums import CommissionStatus
from tierpay.models.types import RatePercentType, UsdType, UTCDateTime, utcnow


class Commission(Base):
    """
    Referral commission.

    Status flow: pending -> approved -> paid, pending/approved -> held,
    any -> reversed (see `COMMISSION_TRANSITIONS`).
    """

    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint(
            "beneficiary_user_id",
            "source_revenue_event_id",
            name="uq_commission_beneficiary_event",
        ),
        CheckConstraint(
            f"layer >= 1 AND layer <= {MAX_COMMISSION_DEPTH}",
            name="check_commission_layer_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    beneficiary_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    source_revenue_event_id: Mapped[int] = mapped_column(
        ForeignKey("revenue_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    layer: Mapped[int] = mapped_column(Integer, nullable=False)

    # Buyer
    referred_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    amount_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)
    rate_percent: Mapped[Decimal] = mapped_column(RatePercentType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CommissionStatus.PENDING.value,
        index=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Commission(id={self.id}, beneficiary={self.beneficiary_user_id}, "
            f"layer={self.layer}, amount={self.amount_usd}, status={self.status})>"
        )
