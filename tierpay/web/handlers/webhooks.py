"""
Custodian webhook endpoint.
"""

from aiohttp import web
from loguru import logger

from tierpay.config.constants import CUSTODIAN_SIGNATURE_HEADER
from tierpay.services.settlement.expiry import sweep_expired_best_effort
from tierpay.services.settlement.notification import parse_notification
from tierpay.services.settlement.reconciler import (
    SettlementOutcome,
    SettlementReconciler,
)
from tierpay.web.context import CATALOG, CONFIG, SESSION_MAKER, VERIFIER


async def custodian_webhook(request: web.Request) -> web.Response:
    """
    POST /webhooks/custodian

    The signature is checked against the raw body before anything touches
    the ledger. An opportunistic expiry sweep follows every notification.
    """
    body = await request.read()
    request.app[VERIFIER].verify(body, request.headers.get(CUSTODIAN_SIGNATURE_HEADER))

    notification = parse_notification(body)
    config = request.app[CONFIG]
    session_maker = request.app[SESSION_MAKER]

    async with session_maker() as session:
        reconciler = SettlementReconciler(
            session,
            request.app[CATALOG],
            tolerance_percent=config.payment_tolerance_percent,
            treasury_vault_id=config.treasury_vault_id or "",
        )
        result = await reconciler.handle(notification)

    await sweep_expired_best_effort(session_maker)

    logger.bind(session_id=result.session_id).info(
        f"Webhook {notification.type} tx {notification.data.id}: {result.outcome.value}"
    )

    if result.outcome == SettlementOutcome.UNMATCHED and not config.ack_unmatched_notifications:
        return web.json_response(
            {"received": False, "outcome": result.outcome.value}, status=404
        )

    return web.json_response({"received": True, "outcome": result.outcome.value})
