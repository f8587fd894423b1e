"""
Affiliate status model.

The package a user currently holds, which gates their commission depth.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tierpay.models.base import Base
from tierpay.models.types import UTCDateTime, utcnow


if TYPE_CHECKING:
    from tierpay.models.user import User


class AffiliateStatus(Base):
    """Current package of a user (one row per user)."""

    __tablename__ = "affiliate_statuses"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    # Lowercase package key
    tier: Mapped[str] = mapped_column(String(32), nullable=False)

    # Package level, the deepest layer the user can earn from
    tier_depth_limit: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship(
        "User", back_populates="affiliate_status", lazy="noload"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AffiliateStatus(user_id={self.user_id}, tier={self.tier}, "
            f"depth={self.tier_depth_limit}, active={self.is_active})>"
        )
