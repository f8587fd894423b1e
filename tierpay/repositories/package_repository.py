"""
Package repository.

Data access layer for the package catalog.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.packages import PackageConfig
from tierpay.models.package import Package
from tierpay.repositories.base import BaseRepository


class PackageRepository(BaseRepository[Package]):
    """Package repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize package repository."""
        super().__init__(Package, session)

    async def list_all(self) -> list[Package]:
        """Get all packages ordered by level."""
        stmt = select(Package).order_by(Package.level)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_config(self, config: PackageConfig) -> Package:
        """
        Create or overwrite a package from a seed definition.

        Args:
            config: Package definition

        Returns:
            Stored package
        """
        package = await self.get_by(name=config.name)
        levels = Package.levels_to_json(config.commission_levels)
        if package is None:
            return await self.create(
                name=config.name,
                display_name=config.display_name,
                level=config.level,
                price_usd=config.price_usd,
                is_active=config.is_active,
                commission_levels=levels,
            )

        package.display_name = config.display_name
        package.level = config.level
        package.price_usd = config.price_usd
        package.is_active = config.is_active
        package.commission_levels = levels
        await self.session.flush()
        return package
