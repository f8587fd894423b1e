"""
Purchase model.

Commercial record of a package purchase, 1:1 with a payment session.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.models.base import Base
from tierpay.models.enums import PaymentSessionStatus
from tierpay.models.types import UsdType, UTCDateTime, utcnow


class Purchase(Base):
    """
    Package purchase.

    `commission_base_usd` is the full price for a new purchase and the price
    difference for an upgrade. `status` mirrors the payment session.
    """

    __tablename__ = "purchases"
    __table_args__ = (
        CheckConstraint("amount_usd > 0", name="check_purchase_amount_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    tier: Mapped[str] = mapped_column(String(32), nullable=False)

    amount_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)
    commission_base_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)

    is_upgrade: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    from_tier: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentSessionStatus.PENDING.value,
        index=True,
    )

    # Upline captured at purchase time
    referred_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Purchase(id={self.id}, user_id={self.user_id}, tier={self.tier}, "
            f"amount={self.amount_usd}, status={self.status})>"
        )
