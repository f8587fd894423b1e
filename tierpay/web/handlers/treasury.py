"""
Treasury admin endpoints.
"""

from aiohttp import web

from tierpay.services.treasury.sweeper import TreasurySweeper
from tierpay.utils.exceptions import ClientError
from tierpay.web.context import CONFIG, CUSTODIAN, SESSION_MAKER
from tierpay.web.requests import SweepRequest, parse_body, require_admin


def _query_int(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None or not raw.strip().isdigit():
        return default
    return int(raw)


async def treasury_overview(request: web.Request) -> web.Response:
    """GET /admin/treasury"""
    require_admin(request)
    config = request.app[CONFIG]

    async with request.app[SESSION_MAKER]() as session:
        summary = await TreasurySweeper(
            session, None, config.treasury_vault_id
        ).summarize(
            asset_id=request.query.get("assetId") or None,
            limit=_query_int(request, "limit", 100),
        )

    return web.json_response(summary.to_dict())


async def treasury_sweep(request: web.Request) -> web.Response:
    """POST /admin/treasury/sweep"""
    require_admin(request)
    config = request.app[CONFIG]
    if not config.treasury_vault_id:
        raise ClientError("TREASURY_VAULT_ID is not configured")

    payload = await parse_body(request, SweepRequest)

    async with request.app[SESSION_MAKER]() as session:
        result = await TreasurySweeper(
            session, request.app[CUSTODIAN], config.treasury_vault_id
        ).sweep_batch(
            session_ids=payload.session_ids,
            asset_id=payload.asset_id,
            limit=payload.limit,
            only_failed=payload.only_failed,
        )

    return web.json_response(result.to_dict())
