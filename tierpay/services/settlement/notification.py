"""
Custodian notification payloads.

Webhooks are a closed tagged union on `type`; anything else is rejected.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from tierpay.config.constants import VAULT_ACCOUNT
from tierpay.utils.exceptions import NotificationFormatError


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TransferPeer(_Payload):
    """Source or destination of a transfer."""

    type: str | None = None
    id: str | None = None


class AmountInfo(_Payload):
    """Transfer amounts."""

    amount: Decimal | None = None
    amount_usd: Decimal | None = Field(default=None, alias="amountUSD")


@dataclass(frozen=True)
class TransferEvent:
    """Fields of a transfer notification used for settlement."""

    tx_id: str
    status: str
    asset_id: str | None
    destination_type: str | None
    destination_vault_id: str | None
    destination_address: str | None
    amount_usd: Decimal | None
    amount_crypto: Decimal | None
    tx_hash: str | None

    @property
    def is_vault_destination(self) -> bool:
        """Only transfers into vault accounts can settle a session."""
        return self.destination_type == VAULT_ACCOUNT


class TransactionData(_Payload):
    """Transaction body of a notification."""

    id: str = Field(min_length=1)
    status: str
    asset_id: str | None = Field(default=None, alias="assetId")
    destination: TransferPeer | None = None
    destination_address: str | None = Field(default=None, alias="destinationAddress")
    amount_info: AmountInfo | None = Field(default=None, alias="amountInfo")
    amount_usd: Decimal | None = Field(default=None, alias="amountUSD")
    amount: Decimal | None = None
    tx_hash: str | None = Field(default=None, alias="txHash")

    def to_event(self) -> TransferEvent:
        """Flatten into the fields the reconciler consumes."""
        info = self.amount_info or AmountInfo()
        destination = self.destination or TransferPeer()
        return TransferEvent(
            tx_id=self.id,
            status=self.status.upper(),
            asset_id=self.asset_id,
            destination_type=destination.type,
            destination_vault_id=destination.id,
            destination_address=self.destination_address or None,
            amount_usd=info.amount_usd if info.amount_usd is not None else self.amount_usd,
            amount_crypto=info.amount if info.amount is not None else self.amount,
            tx_hash=self.tx_hash or None,
        )


class TransactionCreated(_Payload):
    """A new transaction was created at the custodian."""

    type: Literal["TRANSACTION_CREATED"]
    data: TransactionData


class TransactionStatusUpdated(_Payload):
    """A transaction changed status."""

    type: Literal["TRANSACTION_STATUS_UPDATED"]
    data: TransactionData


CustodianNotification = Annotated[
    TransactionCreated | TransactionStatusUpdated,
    Field(discriminator="type"),
]

_notification_adapter: TypeAdapter[CustodianNotification] = TypeAdapter(
    CustodianNotification
)


def parse_notification(body: bytes) -> TransactionCreated | TransactionStatusUpdated:
    """
    Parse a raw webhook body.

    Raises:
        NotificationFormatError: Invalid JSON, unknown type or missing fields
    """
    try:
        return _notification_adapter.validate_json(body)
    except ValidationError as e:
        raise NotificationFormatError(
            f"Malformed notification: {e.error_count()} validation error(s)"
        ) from e
