"""
Custodian REST client.

Thin async wrapper over the custody provider API: vaults, asset
activation, deposit addresses and vault-to-vault transfers. Requests are
authenticated with an RS256 JWT signed by the API user's private key.
"""

import base64
import hashlib
import json
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import aiohttp
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from loguru import logger

from tierpay.utils.exceptions import (
    ConfigurationError,
    CustodianError,
    CustodianNotFoundError,
)

# Token lifetime accepted by the provider
JWT_TTL_SECONDS = 55


@dataclass
class DepositAddress:
    """Deposit address issued for a vault asset."""

    asset_id: str
    address: str
    tag: str | None = None
    legacy_address: str | None = None


@dataclass
class TransferResult:
    """Accepted transfer."""

    tx_id: str
    status: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


class RequestSigner:
    """Builds the bearer JWT for one API request."""

    def __init__(self, api_key: str, private_key_pem: str) -> None:
        key = serialization.load_pem_private_key(
            private_key_pem.encode(), password=None
        )
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("Custodian API key must be an RSA key")
        self.api_key = api_key
        self._private_key = key

    def sign(self, path: str, body: bytes) -> str:
        """
        Create a signed JWT for a request.

        Args:
            path: Request path including query string
            body: Exact request body bytes (empty for GET)

        Returns:
            Compact JWT
        """
        now = int(time.time())
        header = {"alg": "RS256", "typ": "JWT"}
        claims = {
            "uri": path,
            "nonce": secrets.token_hex(16),
            "iat": now,
            "exp": now + JWT_TTL_SECONDS,
            "sub": self.api_key,
            "bodyHash": hashlib.sha256(body).hexdigest(),
        }
        signing_input = ".".join(
            _b64url(json.dumps(part, separators=(",", ":")).encode())
            for part in (header, claims)
        )
        signature = self._private_key.sign(
            signing_input.encode(), padding.PKCS1v15(), hashes.SHA256()
        )
        return f"{signing_input}.{_b64url(signature)}"


class CustodianClient:
    """
    Custody provider API client.

    One aiohttp session is reused for the lifetime of the client; call
    `close()` on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        signer: RequestSigner,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_settings(cls, settings) -> "CustodianClient":
        """Build a client from application settings."""
        if not settings.custodian_api_key or not settings.custodian_private_key:
            raise ConfigurationError(
                "CUSTODIAN_API_KEY and CUSTODIAN_PRIVATE_KEY must be set"
            )
        return cls(
            base_url=settings.custodian_base_url,
            signer=RequestSigner(
                settings.custodian_api_key, settings.custodian_private_key
            ),
            timeout_seconds=settings.custodian_timeout_seconds,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """
        Send a signed request.

        Raises:
            CustodianNotFoundError: HTTP 404
            CustodianError: Any other failure
        """
        body = json.dumps(payload).encode() if payload is not None else b""
        headers = {
            "X-API-Key": self.signer.api_key,
            "Authorization": f"Bearer {self.signer.sign(path, body)}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        session = await self._get_session()
        try:
            async with session.request(
                method,
                f"{self.base_url}{path}",
                data=body or None,
                headers=headers,
            ) as response:
                text = await response.text()
                if response.status == 404:
                    raise CustodianNotFoundError(
                        f"{method} {path}: not found", http_status=404
                    )
                if response.status >= 400:
                    logger.bind(response=text[:500]).warning(
                        f"Custodian {method} {path} failed: HTTP {response.status}"
                    )
                    raise CustodianError(
                        f"{method} {path}: HTTP {response.status} {text[:200]}",
                        http_status=response.status,
                    )
                return json.loads(text) if text else {}
        except (aiohttp.ClientError, TimeoutError) as e:
            raise CustodianError(f"{method} {path}: {e}") from e

    async def create_vault(self, name: str, customer_ref_id: str) -> str:
        """
        Create a vault account.

        Returns:
            New vault id
        """
        data = await self._request(
            "POST",
            "/v1/vault/accounts",
            {
                "name": name,
                "customerRefId": customer_ref_id,
                "hiddenOnUI": False,
                "autoFuel": False,
            },
        )
        vault_id = str(data["id"])
        logger.info(f"Custodian vault {vault_id} created for {customer_ref_id}")
        return vault_id

    async def vault_exists(self, vault_id: str) -> bool:
        """Check that a stored vault still exists."""
        try:
            await self._request("GET", f"/v1/vault/accounts/{vault_id}")
        except CustodianNotFoundError:
            return False
        return True

    async def activate_asset(self, vault_id: str, asset_id: str) -> None:
        """
        Activate an asset wallet in a vault.

        An asset that is already active is not an error.
        """
        try:
            await self._request(
                "POST", f"/v1/vault/accounts/{vault_id}/{asset_id}"
            )
        except CustodianError as e:
            if e.http_status == 400 and "already" in str(e).lower():
                logger.debug(f"Asset {asset_id} already active in vault {vault_id}")
                return
            raise

    async def create_deposit_address(
        self, vault_id: str, asset_id: str, description: str | None = None
    ) -> DepositAddress:
        """Issue a deposit address for a vault asset."""
        payload: dict[str, Any] = {}
        if description:
            payload["description"] = description
        data = await self._request(
            "POST",
            f"/v1/vault/accounts/{vault_id}/{asset_id}/addresses",
            payload,
        )
        return DepositAddress(
            asset_id=asset_id,
            address=data["address"],
            tag=data.get("tag") or None,
            legacy_address=data.get("legacyAddress") or None,
        )

    async def create_transfer(
        self,
        asset_id: str,
        source_vault_id: str,
        destination_vault_id: str,
        amount: Decimal,
        external_tx_id: str,
        note: str | None = None,
    ) -> TransferResult:
        """
        Move funds between two vaults.

        `external_tx_id` is unique per transfer; the provider rejects a
        second transfer with the same value.
        """
        data = await self._request(
            "POST",
            "/v1/transactions",
            {
                "assetId": asset_id,
                "source": {"type": "VAULT_ACCOUNT", "id": source_vault_id},
                "destination": {"type": "VAULT_ACCOUNT", "id": destination_vault_id},
                "amount": str(amount),
                "externalTxId": external_tx_id,
                "note": note or "",
            },
            idempotency_key=external_tx_id,
        )
        return TransferResult(tx_id=str(data["id"]), status=str(data.get("status", "")))
