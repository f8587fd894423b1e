"""
Commission simulation endpoint.
"""

from aiohttp import web

from tierpay.services.commission.simulation import CommissionSimulator
from tierpay.utils.exceptions import ClientError
from tierpay.web.context import CATALOG, SESSION_MAKER
from tierpay.web.requests import require_user_id


async def simulate_commissions(request: web.Request) -> web.Response:
    """GET /commissions/simulate?tier=...&upgrade=true"""
    user_id = require_user_id(request)
    tier = request.query.get("tier", "").strip()
    if not tier:
        raise ClientError("tier is required")
    is_upgrade = request.query.get("upgrade", "").lower() in ("1", "true", "yes")

    async with request.app[SESSION_MAKER]() as session:
        result = await CommissionSimulator(session, request.app[CATALOG]).simulate(
            user_id, tier, is_upgrade=is_upgrade
        )

    distribution = result.distribution
    return web.json_response(
        {
            "purchasePrice": str(result.purchase_price),
            "commissionBase": str(distribution.commission_base),
            "totalCommission": str(distribution.total_commission),
            "payouts": [
                {
                    "beneficiaryUserId": p.beneficiary_user_id,
                    "referredUserId": p.referred_user_id,
                    "layer": p.layer,
                    "ratePercent": str(p.rate_percent),
                    "amountUsd": str(p.amount_usd),
                    "package": p.package,
                    "notes": p.notes,
                }
                for p in distribution.payouts
            ],
            "skipped": [
                {"userId": s.user_id, "layer": s.layer, "reason": s.reason}
                for s in distribution.skipped
            ],
        }
    )
