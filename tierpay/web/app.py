"""
aiohttp application factory.
"""

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tierpay.services.catalog import PackageCatalog
from tierpay.services.custodian.client import CustodianClient
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.services.custodian.signature import SignatureVerifier
from tierpay.web.context import (
    CATALOG,
    CONFIG,
    CUSTODIAN,
    RATES,
    SESSION_MAKER,
    VERIFIER,
    WebConfig,
)
from tierpay.web.handlers.checkout import (
    create_checkout_session,
    get_checkout_session,
)
from tierpay.web.handlers.commissions import simulate_commissions
from tierpay.web.handlers.health import health_handler, liveness_handler
from tierpay.web.handlers.referrals import use_referral_code
from tierpay.web.handlers.treasury import treasury_overview, treasury_sweep
from tierpay.web.handlers.webhooks import custodian_webhook
from tierpay.web.middleware import error_middleware


def create_app(
    session_maker: async_sessionmaker[AsyncSession],
    catalog: PackageCatalog,
    custodian: CustodianClient,
    rates: ExchangeRateProvider,
    verifier: SignatureVerifier,
    config: WebConfig,
) -> web.Application:
    """
    Build the HTTP application.

    Args:
        session_maker: Session factory for per-request database sessions
        catalog: Loaded package catalog
        custodian: Custodian API client
        rates: Exchange rate provider
        verifier: Webhook signature verifier
        config: Request-handling options

    Returns:
        Configured application (not started)
    """
    app = web.Application(middlewares=[error_middleware])
    app[SESSION_MAKER] = session_maker
    app[CATALOG] = catalog
    app[CUSTODIAN] = custodian
    app[RATES] = rates
    app[VERIFIER] = verifier
    app[CONFIG] = config

    app.router.add_post("/webhooks/custodian", custodian_webhook)
    app.router.add_post("/checkout/sessions", create_checkout_session)
    app.router.add_get("/checkout/sessions/{session_id}", get_checkout_session)
    app.router.add_get("/commissions/simulate", simulate_commissions)
    app.router.add_post("/referrals/use-code", use_referral_code)
    app.router.add_get("/admin/treasury", treasury_overview)
    app.router.add_post("/admin/treasury/sweep", treasury_sweep)
    app.router.add_get("/health", health_handler)
    app.router.add_get("/health/live", liveness_handler)

    return app
