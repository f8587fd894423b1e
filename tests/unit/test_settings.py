"""
Unit tests for settings validation.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from tierpay.config.settings import Settings

PROD_TOKEN = "a" * 64


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "postgresql://tierpay:secret@db/tierpay",
        "environment": "development",
        "log_file": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestProductionGuards:
    """Production refuses unsafe configuration."""

    def test_valid_production(self):
        settings = make_settings(
            environment="production",
            admin_api_token=PROD_TOKEN,
            custodian_environment="production",
        )

        assert settings.is_production

    def test_signature_bypass_refused(self):
        with pytest.raises(ValidationError, match="CUSTODIAN_SIGNATURE_BYPASS"):
            make_settings(
                environment="production",
                admin_api_token=PROD_TOKEN,
                custodian_signature_bypass=True,
            )

    def test_debug_refused(self):
        with pytest.raises(ValidationError, match="DEBUG"):
            make_settings(environment="production", admin_api_token=PROD_TOKEN, debug=True)

    def test_short_admin_token_refused(self):
        with pytest.raises(ValidationError, match="ADMIN_API_TOKEN"):
            make_settings(environment="production", admin_api_token="short")

    def test_bypass_allowed_outside_production(self):
        settings = make_settings(custodian_signature_bypass=True)

        assert settings.custodian_signature_bypass


class TestFieldValidation:
    """Field-level validation and derived values."""

    def test_rejects_unknown_database_scheme(self):
        with pytest.raises(ValidationError, match="DATABASE_URL"):
            make_settings(database_url="mysql://db/tierpay")

    def test_async_database_url(self):
        settings = make_settings()

        assert settings.async_database_url == "postgresql+asyncpg://tierpay:secret@db/tierpay"

    def test_custodian_environment_normalized(self):
        assert make_settings(custodian_environment="SANDBOX").custodian_environment == "sandbox"

    def test_custodian_environment_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(custodian_environment="staging")

    def test_supported_assets_parsed(self):
        settings = make_settings(supported_assets=" BTC , ETH,, SOL ")

        assert settings.get_supported_assets() == ["BTC", "ETH", "SOL"]

    @pytest.mark.parametrize("tolerance", [Decimal("-1"), Decimal("100")])
    def test_tolerance_bounds(self, tolerance):
        with pytest.raises(ValidationError):
            make_settings(payment_tolerance_percent=tolerance)

    def test_sweep_batch_limit_capped(self):
        with pytest.raises(ValidationError):
            make_settings(treasury_sweep_batch_limit=501)
