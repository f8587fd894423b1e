"""
Referral model.

Directed edge referrer -> referred. Written together with
`User.referred_by_user_id`.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.models.base import Base
from tierpay.models.enums import ReferralStatus
from tierpay.models.types import UTCDateTime, utcnow


class Referral(Base):
    """Referral relationship (a user has at most one referrer)."""

    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    referrer_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    referred_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReferralStatus.ACTIVE.value
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Referral(referrer={self.referrer_user_id}, "
            f"referred={self.referred_user_id}, status={self.status})>"
        )
