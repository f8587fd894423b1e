"""
Exception handling utilities.

Service exception hierarchy. Each class carries the HTTP status and the
public message the web layer answers with.
"""


class TierpayError(Exception):
    """Base class for service errors."""

    status_code = 500
    public_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ClientError(TierpayError):
    """Request cannot be served as asked (HTTP 400)."""

    status_code = 400
    public_message = "Invalid request"


class UnknownTierError(ClientError):
    """Tier is not in the catalog or is inactive."""

    public_message = "Unknown or inactive package"


class UnsupportedAssetError(ClientError):
    """Asset is not in the supported asset list."""

    public_message = "Unsupported asset"


class InvalidUpgradeError(ClientError):
    """Requested tier is not above the user's current package."""

    public_message = "Package must be higher than the current package"


class UserNotFoundError(ClientError):
    """Caller does not exist."""

    public_message = "User not found"


class ReferralError(ClientError):
    """Referral code cannot be applied."""

    public_message = "Referral code cannot be applied"


class NotificationAuthError(TierpayError):
    """Webhook signature is missing or invalid (HTTP 401)."""

    status_code = 401
    public_message = "Invalid signature"


class NotificationFormatError(TierpayError):
    """Webhook body is malformed or of an unknown type (HTTP 400)."""

    status_code = 400
    public_message = "Malformed notification"


class CustodianError(TierpayError):
    """Custodian API call failed (HTTP 502)."""

    status_code = 502
    public_message = "Custodian unavailable"

    def __init__(
        self, message: str | None = None, http_status: int | None = None
    ) -> None:
        super().__init__(message)
        self.http_status = http_status


class CustodianNotFoundError(CustodianError):
    """Custodian resource does not exist."""

    public_message = "Custodian resource not found"


class ConfigurationError(TierpayError):
    """Required configuration is missing."""

    public_message = "Service is not configured"
