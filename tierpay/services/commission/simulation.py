"""
Commission simulation.

Previews the commissions a purchase would pay. Reads only.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.repositories.affiliate_status_repository import (
    AffiliateStatusRepository,
)
from tierpay.services.catalog import PackageCatalog
from tierpay.services.commission.chain import load_ancestors
from tierpay.services.commission.engine import (
    DistributionResult,
    calculate_commissions,
)
from tierpay.utils.exceptions import InvalidUpgradeError, UnknownTierError


@dataclass
class SimulationResult:
    """Preview of a purchase's commissions."""

    purchase_price: Decimal
    distribution: DistributionResult


class CommissionSimulator:
    """Read-only commission preview."""

    def __init__(self, session: AsyncSession, catalog: PackageCatalog) -> None:
        self.session = session
        self.catalog = catalog

    async def simulate(
        self, buyer_id: int, tier: str, is_upgrade: bool = False
    ) -> SimulationResult:
        """
        Preview commissions for a hypothetical purchase.

        For an upgrade the base is the price difference to the buyer's
        current package.

        Raises:
            UnknownTierError: Tier not in the catalog
            InvalidUpgradeError: Upgrade to a package that is not higher
        """
        package = self.catalog.get_active(tier)
        if package is None:
            raise UnknownTierError(f"Unknown package: {tier}")

        base = package.price_usd
        if is_upgrade:
            status = await AffiliateStatusRepository(self.session).get_for_user(buyer_id)
            current = self.catalog.get(status.tier) if status and status.is_active else None
            if current is not None:
                if package.level <= current.level:
                    raise InvalidUpgradeError(
                        f"Cannot move from {current.name} to {package.name}"
                    )
                base = package.price_usd - current.price_usd

        ancestors = await load_ancestors(self.session, buyer_id)
        return SimulationResult(
            purchase_price=package.price_usd,
            distribution=calculate_commissions(buyer_id, base, ancestors, self.catalog),
        )
