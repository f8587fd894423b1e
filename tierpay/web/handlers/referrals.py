"""
Referral code endpoint.
"""

from aiohttp import web

from tierpay.services.referral.referral_service import ReferralService
from tierpay.web.context import SESSION_MAKER
from tierpay.web.requests import UseCodeRequest, parse_body, require_user_id


async def use_referral_code(request: web.Request) -> web.Response:
    """POST /referrals/use-code"""
    user_id = require_user_id(request)
    payload = await parse_body(request, UseCodeRequest)

    async with request.app[SESSION_MAKER]() as session:
        referrer = await ReferralService(session).set_referrer(user_id, payload.code)

    return web.json_response({"success": True, "referrerUserId": referrer.id})
