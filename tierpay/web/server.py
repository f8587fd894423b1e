"""
HTTP server entry point.

Run with `python -m tierpay.web.server` or the `tierpay-api` script.
"""

from aiohttp import web
from loguru import logger

from tierpay.config.database import async_engine, async_session_maker
from tierpay.config.logging import setup_logging
from tierpay.config.settings import settings
from tierpay.services.catalog import PackageCatalog
from tierpay.services.custodian.client import CustodianClient
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.services.custodian.signature import SignatureVerifier
from tierpay.web.app import create_app
from tierpay.web.context import CUSTODIAN, RATES, WebConfig


async def build_app() -> web.Application:
    """Load the catalog and wire clients into the application."""
    async with async_session_maker() as session:
        catalog = await PackageCatalog.load(session)
    logger.info(f"Loaded {len(catalog)} packages")

    if not catalog:
        logger.warning(
            "Package catalog is empty. Seed it with `python scripts/init_database.py --seed-only`."
        )

    app = create_app(
        session_maker=async_session_maker,
        catalog=catalog,
        custodian=CustodianClient.from_settings(settings),
        rates=ExchangeRateProvider.from_settings(settings),
        verifier=SignatureVerifier.from_settings(settings),
        config=WebConfig.from_settings(settings),
    )
    app.on_cleanup.append(_close_resources)
    return app


async def _close_resources(app: web.Application) -> None:
    await app[CUSTODIAN].close()
    await app[RATES].close()
    await async_engine.dispose()
    logger.info("HTTP server resources released")


def main() -> None:
    """Start the HTTP API."""
    setup_logging("api")
    logger.info(f"Listening on {settings.http_host}:{settings.http_port}")
    web.run_app(
        build_app(),
        host=settings.http_host,
        port=settings.http_port,
        print=None,
    )


if __name__ == "__main__":
    main()
