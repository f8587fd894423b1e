"""
Custodian webhook signature verification.

Notifications carry a base64 RSA-SHA512 (PKCS#1 v1.5) signature of the raw
request body. The public key depends on the custodian environment.
"""

import base64
import binascii

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from loguru import logger

from tierpay.config.constants import (
    CUSTODIAN_PRODUCTION_PUBLIC_KEY,
    CUSTODIAN_SANDBOX_PUBLIC_KEY,
)
from tierpay.utils.exceptions import ConfigurationError, NotificationAuthError


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    """Parse a PEM encoded RSA public key."""
    key = serialization.load_pem_public_key(pem.encode())
    if not isinstance(key, rsa.RSAPublicKey):
        raise ConfigurationError("Custodian webhook key must be an RSA key")
    return key


class SignatureVerifier:
    """
    Verifies webhook bodies against the custodian's public key.

    With `bypass` enabled (never in production, enforced by settings) an
    invalid signature is logged and accepted.
    """

    def __init__(self, public_key_pem: str, bypass: bool = False) -> None:
        self._public_key = load_public_key(public_key_pem)
        self.bypass = bypass

    @classmethod
    def from_settings(cls, settings) -> "SignatureVerifier":
        """Build a verifier for the configured custodian environment."""
        pem = settings.custodian_webhook_public_key
        if not pem:
            pem = (
                CUSTODIAN_PRODUCTION_PUBLIC_KEY
                if settings.custodian_environment == "production"
                else CUSTODIAN_SANDBOX_PUBLIC_KEY
            )
        return cls(pem, bypass=settings.custodian_signature_bypass)

    def is_valid(self, body: bytes, signature: str | None) -> bool:
        """
        Check a signature without raising.

        Args:
            body: Raw request body
            signature: Base64 signature header value

        Returns:
            True if the signature matches the body
        """
        if not signature:
            return False

        try:
            raw_signature = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            return False

        try:
            self._public_key.verify(
                raw_signature, body, padding.PKCS1v15(), hashes.SHA512()
            )
        except InvalidSignature:
            return False
        return True

    def verify(self, body: bytes, signature: str | None) -> None:
        """
        Verify a webhook signature.

        Args:
            body: Raw request body
            signature: Base64 signature header value

        Raises:
            NotificationAuthError: Signature missing or invalid (no bypass)
        """
        if self.is_valid(body, signature):
            return

        if self.bypass:
            logger.bind(has_signature=bool(signature)).warning(
                "Custodian webhook signature invalid, accepted because "
                "signature bypass is enabled"
            )
            return

        raise NotificationAuthError(
            "Missing signature" if not signature else "Invalid signature"
        )
