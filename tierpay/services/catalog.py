"""
Package catalog.

Read-only view of the `packages` table, loaded once per process and
reloadable. Prices and commission rates are always read from here.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.packages import PACKAGE_SEED, PackageConfig
from tierpay.repositories.package_repository import PackageRepository


class PackageCatalog(Mapping[str, PackageConfig]):
    """
    Immutable mapping of package key to package definition.

    `reload()` swaps the whole mapping at once, so readers never observe a
    half-loaded catalog.
    """

    def __init__(self, packages: Mapping[str, PackageConfig] | None = None) -> None:
        self._packages: Mapping[str, PackageConfig] = MappingProxyType(
            dict(packages or {})
        )

    @classmethod
    async def load(cls, session: AsyncSession) -> "PackageCatalog":
        """Load the catalog from the database."""
        catalog = cls()
        await catalog.reload(session)
        return catalog

    @classmethod
    def from_seed(cls) -> "PackageCatalog":
        """Catalog built from the bundled seed definitions."""
        return cls(PACKAGE_SEED)

    async def reload(self, session: AsyncSession) -> None:
        """Replace the catalog with the current database contents."""
        rows = await PackageRepository(session).list_all()
        self._packages = MappingProxyType({row.name: row.to_config() for row in rows})
        logger.info(f"Package catalog loaded: {len(self._packages)} packages")

    def __getitem__(self, tier: str) -> PackageConfig:
        return self._packages[tier.lower()]

    def __contains__(self, tier: object) -> bool:
        return isinstance(tier, str) and tier.lower() in self._packages

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def get_active(self, tier: str) -> PackageConfig | None:
        """Package for a tier key, or None if unknown or inactive."""
        package = self.get(tier.lower()) if isinstance(tier, str) else None
        if package is None or not package.is_active:
            return None
        return package


async def seed_packages(session: AsyncSession) -> int:
    """
    Write the bundled package definitions into the `packages` table.

    Returns:
        Number of packages written
    """
    repo = PackageRepository(session)
    for config in PACKAGE_SEED.values():
        await repo.upsert_config(config)
    await session.commit()
    logger.info(f"Seeded {len(PACKAGE_SEED)} packages")
    return len(PACKAGE_SEED)
