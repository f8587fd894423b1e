"""
Checkout endpoints.
"""

from aiohttp import web

from tierpay.services.payment_session.manager import (
    PaymentSessionManager,
    SessionStatusView,
)
from tierpay.web.context import CATALOG, CONFIG, CUSTODIAN, RATES, SESSION_MAKER
from tierpay.web.requests import CheckoutRequest, parse_body, require_user_id


def _manager(request: web.Request, session) -> PaymentSessionManager:
    config = request.app[CONFIG]
    return PaymentSessionManager(
        session,
        request.app[CATALOG],
        request.app[CUSTODIAN],
        request.app[RATES],
        supported_assets=list(config.supported_assets),
        ttl_minutes=config.payment_session_ttl_minutes,
    )


async def create_checkout_session(request: web.Request) -> web.Response:
    """POST /checkout/sessions"""
    user_id = require_user_id(request)
    payload = await parse_body(request, CheckoutRequest)

    async with request.app[SESSION_MAKER]() as session:
        payment_session = await _manager(request, session).create_session(
            user_id, payload.tier, payload.asset_id
        )
        view = SessionStatusView.from_session(payment_session)

    return web.json_response(view.to_dict(), status=201)


async def get_checkout_session(request: web.Request) -> web.Response:
    """GET /checkout/sessions/{session_id}"""
    user_id = require_user_id(request)
    raw_id = request.match_info["session_id"]
    if not raw_id.isdigit():
        return web.json_response({"error": "Session not found"}, status=404)

    async with request.app[SESSION_MAKER]() as session:
        view = await _manager(request, session).get_session_status(int(raw_id), user_id)

    if view is None:
        return web.json_response({"error": "Session not found"}, status=404)
    return web.json_response(view.to_dict())
