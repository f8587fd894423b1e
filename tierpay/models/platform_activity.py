"""
Platform activity model.

Append-only audit trail of settlement, commission and sweep events.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.models.base import Base
from tierpay.models.types import UsdType, UTCDateTime, utcnow


class ActivityType:
    """Activity type constants."""

    # Checkout
    PAYMENT_SESSION_CREATED = "payment_session_created"

    # Settlement
    PAYMENT_DETECTED = "payment_detected"
    PAYMENT_CONFIRMING = "payment_confirming"
    PAYMENT_COMPLETED = "payment_completed"
    PARTIAL_PAYMENT = "partial_payment"
    PAYMENT_FAILED = "payment_failed"
    UNEXPECTED_PAYMENT = "unexpected_payment"  # No session matched
    LATE_PAYMENT = "late_payment"  # Completed transfer for an expired session
    NOTIFICATION_IGNORED = "notification_ignored"

    # Commissions
    COMMISSION_DISTRIBUTED = "commission_distributed"
    COMMISSION_CYCLE_DETECTED = "commission_cycle_detected"

    # Treasury
    TREASURY_SWEEP = "treasury_sweep"


class PlatformActivity(Base):
    """Audit log entry."""

    __tablename__ = "platform_activities"
    __table_args__ = (
        Index("ix_platform_activities_type_created", "event_type", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Nullable for events that matched no user
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    amount_usd: Mapped[Decimal | None] = mapped_column(UsdType, nullable=True)

    extra_data: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PlatformActivity(id={self.id}, type={self.event_type}, "
            f"user_id={self.user_id})>"
        )
