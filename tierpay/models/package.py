"""
Package catalog model.

Canonical source of prices and per-layer commission rates.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierpay.config.packages import CommissionLevel, PackageConfig
from tierpay.models.base import Base
from tierpay.models.types import UsdType, UTCDateTime, utcnow


class Package(Base):
    """
    Membership package.

    `commission_levels` is an ordered list of {"level": int,
    "rate_percent": str}; its length is the deepest layer the package
    earns from.
    """

    __tablename__ = "packages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)

    level: Mapped[int] = mapped_column(Integer, nullable=False)

    price_usd: Mapped[Decimal] = mapped_column(UsdType, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    commission_levels: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def to_config(self) -> PackageConfig:
        """Freeze the row into an immutable package definition."""
        levels = sorted(
            (
                CommissionLevel(
                    level=int(entry["level"]),
                    rate_percent=Decimal(str(entry["rate_percent"])),
                )
                for entry in self.commission_levels or []
            ),
            key=lambda entry: entry.level,
        )
        return PackageConfig(
            name=self.name,
            display_name=self.display_name,
            level=self.level,
            price_usd=Decimal(self.price_usd),
            is_active=self.is_active,
            commission_levels=tuple(levels),
        )

    @staticmethod
    def levels_to_json(levels: tuple[CommissionLevel, ...]) -> list[dict]:
        """Serialize commission levels for the JSON column."""
        return [
            {"level": entry.level, "rate_percent": str(entry.rate_percent)}
            for entry in levels
        ]

    def __repr__(self) -> str:
        """String representation."""
        return f"<Package(name={self.name}, level={self.level}, price={self.price_usd})>"
