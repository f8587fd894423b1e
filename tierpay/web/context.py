"""
Application context keys.

Everything a handler needs is stored on the aiohttp application under these
keys by `create_app`.
"""

from dataclasses import dataclass
from decimal import Decimal

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tierpay.services.catalog import PackageCatalog
from tierpay.services.custodian.client import CustodianClient
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.services.custodian.signature import SignatureVerifier


@dataclass(frozen=True)
class WebConfig:
    """Request-handling options taken from settings."""

    admin_api_token: str | None
    treasury_vault_id: str | None
    ack_unmatched_notifications: bool
    payment_tolerance_percent: Decimal
    supported_assets: tuple[str, ...]
    payment_session_ttl_minutes: int

    @classmethod
    def from_settings(cls, settings) -> "WebConfig":
        return cls(
            admin_api_token=settings.admin_api_token,
            treasury_vault_id=settings.treasury_vault_id,
            ack_unmatched_notifications=settings.ack_unmatched_notifications,
            payment_tolerance_percent=settings.payment_tolerance_percent,
            supported_assets=tuple(settings.get_supported_assets()),
            payment_session_ttl_minutes=settings.payment_session_ttl_minutes,
        )


SESSION_MAKER = web.AppKey("session_maker", async_sessionmaker[AsyncSession])
CATALOG = web.AppKey("catalog", PackageCatalog)
CUSTODIAN = web.AppKey("custodian", CustodianClient)
RATES = web.AppKey("rates", ExchangeRateProvider)
VERIFIER = web.AppKey("verifier", SignatureVerifier)
CONFIG = web.AppKey("config", WebConfig)
