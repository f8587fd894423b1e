"""
User model.

Holds only what settlement and commission distribution need: the referral
code, the upline pointer and the user's custodian vault.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tierpay.models.base import Base
from tierpay.models.types import UTCDateTime, utcnow


if TYPE_CHECKING:
    from tierpay.models.affiliate_status import AffiliateStatus


class User(Base):
    """
    Platform user.

    `referred_by_user_id` is set once (at signup or through a referral code)
    and never changed afterwards. The commission walk follows this pointer.
    """

    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    referral_code: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, index=True
    )

    # Upline pointer
    referred_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Per-user custodian vault
    custodian_vault_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    # Relationships
    affiliate_status: Mapped["AffiliateStatus | None"] = relationship(
        "AffiliateStatus",
        back_populates="user",
        uselist=False,
        lazy="noload",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, email={self.email!r}, "
            f"referred_by={self.referred_by_user_id})>"
        )
