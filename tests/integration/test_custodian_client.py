"""
Custodian client and rate provider tests against a local fake server.
"""

import base64
import hashlib
import json
from decimal import Decimal

import pytest
from aiohttp import web
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from tierpay.services.custodian.client import CustodianClient, RequestSigner
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.utils.exceptions import CustodianError, CustodianNotFoundError


@pytest.fixture(scope="module")
def api_key_pair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    return private_key.public_key(), pem


def _b64url_decode(part: str) -> bytes:
    return base64.urlsafe_b64decode(part + "=" * (-len(part) % 4))


@pytest.fixture
async def fake_custodian(aiohttp_server):
    """Minimal custodian API recording every request it receives."""
    received = []

    async def record(request: web.Request) -> bytes:
        body = await request.read()
        received.append(
            {
                "method": request.method,
                "path": request.path_qs,
                "headers": dict(request.headers),
                "body": body,
            }
        )
        return body

    async def create_vault(request):
        await record(request)
        return web.json_response({"id": "42", "name": "user-1"})

    async def get_vault(request):
        await record(request)
        if request.match_info["vault_id"] == "missing":
            return web.json_response({"message": "not found"}, status=404)
        return web.json_response({"id": request.match_info["vault_id"]})

    async def activate_asset(request):
        await record(request)
        if request.match_info["vault_id"] == "active":
            return web.json_response(
                {"message": "Asset wallet already exists"}, status=400
            )
        return web.json_response({"id": request.match_info["asset_id"]})

    async def create_address(request):
        await record(request)
        return web.json_response({"address": "tb1q-fresh", "tag": ""})

    async def create_transaction(request):
        await record(request)
        payload = json.loads(await request.read())
        if payload["externalTxId"] == "sweep-fail":
            return web.json_response({"message": "insufficient funds"}, status=400)
        return web.json_response({"id": "tx-77", "status": "SUBMITTED"})

    app = web.Application()
    app.router.add_post("/v1/vault/accounts", create_vault)
    app.router.add_get("/v1/vault/accounts/{vault_id}", get_vault)
    app.router.add_post("/v1/vault/accounts/{vault_id}/{asset_id}", activate_asset)
    app.router.add_post(
        "/v1/vault/accounts/{vault_id}/{asset_id}/addresses", create_address
    )
    app.router.add_post("/v1/transactions", create_transaction)

    server = await aiohttp_server(app)
    server.received = received
    return server


@pytest.fixture
async def custodian(fake_custodian, api_key_pair):
    _, pem = api_key_pair
    client = CustodianClient(
        str(fake_custodian.make_url("/")), RequestSigner("api-key-1", pem)
    )
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_requests_carry_valid_jwt(custodian, fake_custodian, api_key_pair):
    public_key, _ = api_key_pair

    vault_id = await custodian.create_vault(name="user-1", customer_ref_id="1")

    assert vault_id == "42"
    request = fake_custodian.received[0]
    assert request["headers"]["X-API-Key"] == "api-key-1"

    token = request["headers"]["Authorization"].removeprefix("Bearer ")
    header_b64, claims_b64, signature_b64 = token.split(".")
    public_key.verify(
        _b64url_decode(signature_b64),
        f"{header_b64}.{claims_b64}".encode(),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    claims = json.loads(_b64url_decode(claims_b64))
    assert claims["uri"] == "/v1/vault/accounts"
    assert claims["sub"] == "api-key-1"
    assert claims["bodyHash"] == hashlib.sha256(request["body"]).hexdigest()
    assert claims["exp"] - claims["iat"] == 55


@pytest.mark.asyncio
async def test_vault_exists(custodian):
    assert await custodian.vault_exists("7")
    assert not await custodian.vault_exists("missing")


@pytest.mark.asyncio
async def test_activate_already_active_asset(custodian):
    await custodian.activate_asset("active", "BTC_TEST")
    await custodian.activate_asset("7", "BTC_TEST")


@pytest.mark.asyncio
async def test_deposit_address(custodian, fake_custodian):
    deposit = await custodian.create_deposit_address("7", "BTC_TEST", description="gold")

    assert deposit.address == "tb1q-fresh"
    assert deposit.tag is None
    assert json.loads(fake_custodian.received[-1]["body"]) == {"description": "gold"}


@pytest.mark.asyncio
async def test_transfer_is_idempotent_per_external_id(custodian, fake_custodian):
    result = await custodian.create_transfer(
        asset_id="BTC_TEST",
        source_vault_id="7",
        destination_vault_id="treasury",
        amount=Decimal("0.0101"),
        external_tx_id="sweep-3",
    )

    assert result.tx_id == "tx-77"
    assert result.status == "SUBMITTED"
    request = fake_custodian.received[-1]
    assert request["headers"]["Idempotency-Key"] == "sweep-3"
    payload = json.loads(request["body"])
    assert payload["amount"] == "0.0101"
    assert payload["destination"] == {"type": "VAULT_ACCOUNT", "id": "treasury"}


@pytest.mark.asyncio
async def test_http_error_raises(custodian):
    with pytest.raises(CustodianError) as exc_info:
        await custodian.create_transfer(
            asset_id="BTC_TEST",
            source_vault_id="7",
            destination_vault_id="treasury",
            amount=Decimal("1"),
            external_tx_id="sweep-fail",
        )

    assert exc_info.value.http_status == 400
    assert not isinstance(exc_info.value, CustodianNotFoundError)


@pytest.mark.asyncio
async def test_unreachable_custodian(api_key_pair, unused_tcp_port):
    _, pem = api_key_pair
    client = CustodianClient(
        f"http://127.0.0.1:{unused_tcp_port}", RequestSigner("k", pem), timeout_seconds=2
    )
    try:
        with pytest.raises(CustodianError):
            await client.create_vault(name="x", customer_ref_id="1")
    finally:
        await client.close()


class TestExchangeRates:
    """Spot rates with fallback."""

    @pytest.fixture
    async def rate_server(self, aiohttp_server):
        async def simple_price(request):
            coin = request.query["ids"]
            if coin == "bitcoin":
                return web.json_response({"bitcoin": {"usd": 64250.5}})
            if coin == "ethereum":
                return web.json_response({"error": "rate limited"}, status=429)
            return web.json_response({coin: {"usd": 0}})

        app = web.Application()
        app.router.add_get("/simple/price", simple_price)
        return await aiohttp_server(app)

    @pytest.fixture
    async def rates(self, rate_server):
        provider = ExchangeRateProvider(
            str(rate_server.make_url("/simple/price")), Decimal("1000")
        )
        yield provider
        await provider.close()

    @pytest.mark.asyncio
    async def test_live_rate(self, rates):
        assert await rates.get_usd_rate("BTC_TEST") == Decimal("64250.5")

    @pytest.mark.asyncio
    async def test_http_error_uses_fallback(self, rates):
        assert await rates.get_usd_rate("ETH") == Decimal("1000")

    @pytest.mark.asyncio
    async def test_non_positive_rate_uses_fallback(self, rates):
        assert await rates.get_usd_rate("SOL") == Decimal("1000")

    @pytest.mark.asyncio
    async def test_unmapped_asset_uses_fallback(self, rates):
        assert await rates.get_usd_rate("DOGE") == Decimal("1000")
