"""
Request parsing and caller identity.

Authentication happens upstream: the auth proxy sets `X-User-Id`. Admin
routes require the configured bearer token.
"""

import hmac
import json
from typing import TypeVar

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tierpay.utils.exceptions import ClientError
from tierpay.web.context import CONFIG

USER_ID_HEADER = "X-User-Id"

M = TypeVar("M", bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CheckoutRequest(_Body):
    """POST /checkout/sessions"""

    tier: str = Field(min_length=1, max_length=32)
    asset_id: str = Field(alias="assetId", min_length=1, max_length=32)


class UseCodeRequest(_Body):
    """POST /referrals/use-code"""

    code: str = Field(min_length=1, max_length=32)


class SweepRequest(_Body):
    """POST /admin/treasury/sweep"""

    session_ids: list[int] | None = Field(default=None, alias="sessionIds")
    asset_id: str | None = Field(default=None, alias="assetId")
    limit: int = Field(default=100, ge=1)
    only_failed: bool = Field(default=False, alias="onlyFailed")


def _unauthorized() -> web.HTTPUnauthorized:
    return web.HTTPUnauthorized(
        text=json.dumps({"error": "Unauthorized"}),
        content_type="application/json",
    )


def require_user_id(request: web.Request) -> int:
    """
    Caller's user id from the auth proxy header.

    Raises:
        HTTPUnauthorized: Header missing or not an id
    """
    raw = request.headers.get(USER_ID_HEADER, "").strip()
    if not raw.isdigit():
        raise _unauthorized()
    return int(raw)


def require_admin(request: web.Request) -> None:
    """
    Check the admin bearer token.

    Raises:
        HTTPUnauthorized: Token missing, wrong, or admin API disabled
    """
    expected = request.app[CONFIG].admin_api_token
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if (
        not expected
        or scheme.lower() != "bearer"
        or not hmac.compare_digest(token.strip().encode(), expected.encode())
    ):
        raise _unauthorized()


async def parse_body(request: web.Request, model: type[M]) -> M:
    """
    Parse a JSON body into a request model.

    An empty body is treated as `{}`.

    Raises:
        ClientError: Invalid JSON or validation failure
    """
    raw = await request.read()
    try:
        return model.model_validate_json(raw or b"{}")
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ClientError(f"Invalid request: {field} {first.get('msg', '')}".strip()) from e
