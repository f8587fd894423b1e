"""
Package catalog seed data.

The `packages` table is the canonical source of prices and commission rates.
The definitions below seed that table and serve as test fixtures; runtime code
reads the catalog through `tierpay.services.catalog.PackageCatalog`.
"""

from decimal import Decimal
from typing import NamedTuple


class CommissionLevel(NamedTuple):
    """Commission rate for one referral layer."""

    level: int
    rate_percent: Decimal


class PackageConfig(NamedTuple):
    """Immutable package definition."""

    name: str  # Lowercase key: bronze ... titan
    display_name: str
    level: int  # Package level, also the deepest layer it can earn from
    price_usd: Decimal
    is_active: bool
    commission_levels: tuple[CommissionLevel, ...]

    @property
    def max_depth(self) -> int:
        """Deepest layer with a configured rate."""
        return len(self.commission_levels)

    def rate_for_layer(self, layer: int) -> Decimal | None:
        """
        Get this package's commission rate for a referral layer.

        Args:
            layer: Referral layer (1 = direct referrer)

        Returns:
            Rate in percent, or None if the package pays nothing at that layer
        """
        for entry in self.commission_levels:
            if entry.level == layer:
                return entry.rate_percent
        return None


# Canonical per-layer rates; each package carries the prefix up to its level
_LAYER_RATES = (
    Decimal("10"),
    Decimal("5"),
    Decimal("2.5"),
    Decimal("1.25"),
    Decimal("0.625"),
    Decimal("0.3175"),
    Decimal("0.15875"),
    Decimal("0.079375"),
)


def _levels(depth: int) -> tuple[CommissionLevel, ...]:
    return tuple(
        CommissionLevel(level=i + 1, rate_percent=rate)
        for i, rate in enumerate(_LAYER_RATES[:depth])
    )


def _package(name: str, level: int, price: str) -> PackageConfig:
    return PackageConfig(
        name=name,
        display_name=name.capitalize(),
        level=level,
        price_usd=Decimal(price),
        is_active=True,
        commission_levels=_levels(level),
    )


PACKAGE_SEED: dict[str, PackageConfig] = {
    package.name: package
    for package in (
        _package("bronze", 1, "100"),
        _package("silver", 2, "250"),
        _package("gold", 3, "500"),
        _package("platinum", 4, "1000"),
        _package("diamond", 5, "2500"),
        _package("elite", 6, "5000"),
        _package("legend", 7, "10000"),
        _package("titan", 8, "25000"),
    )
}
