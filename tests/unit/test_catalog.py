"""
Unit tests for the package catalog and seed definitions.
"""

from decimal import Decimal

from tierpay.config.packages import PACKAGE_SEED, PackageConfig
from tierpay.services.catalog import PackageCatalog


class TestSeedPackages:
    """Bundled package definitions."""

    def test_eight_packages_in_level_order(self):
        levels = [p.level for p in PACKAGE_SEED.values()]

        assert levels == list(range(1, 9))

    def test_each_package_rates_up_to_its_level(self):
        for package in PACKAGE_SEED.values():
            assert package.max_depth == package.level
            assert package.rate_for_layer(package.level) is not None
            assert package.rate_for_layer(package.level + 1) is None

    def test_layer_rates(self):
        titan = PACKAGE_SEED["titan"]

        assert titan.rate_for_layer(1) == Decimal("10")
        assert titan.rate_for_layer(6) == Decimal("0.3175")
        assert titan.rate_for_layer(8) == Decimal("0.079375")
        assert titan.rate_for_layer(0) is None


class TestPackageCatalog:
    """Read-only, case-insensitive mapping."""

    def test_case_insensitive_lookup(self, catalog):
        assert catalog["GOLD"].name == "gold"
        assert "Titan" in catalog
        assert "mythril" not in catalog
        assert 5 not in catalog

    def test_get_active_skips_inactive(self):
        retired = PACKAGE_SEED["gold"]._replace(is_active=False)
        catalog = PackageCatalog({"gold": retired, "silver": PACKAGE_SEED["silver"]})

        assert catalog.get_active("gold") is None
        assert catalog.get_active("silver") == PACKAGE_SEED["silver"]
        assert catalog.get_active("unknown") is None

    def test_len_and_iteration(self, catalog):
        assert len(catalog) == 8
        assert list(catalog)[0] == "bronze"

    def test_mapping_is_read_only(self, catalog):
        assert isinstance(catalog["gold"], PackageConfig)
        assert not hasattr(catalog, "__setitem__")
