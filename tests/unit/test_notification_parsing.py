"""
Unit tests for custodian notification parsing.
"""

import json
from decimal import Decimal

import pytest

from tierpay.services.settlement.notification import (
    TransactionCreated,
    TransactionStatusUpdated,
    parse_notification,
)
from tierpay.utils.exceptions import NotificationFormatError


def body(payload) -> bytes:
    return json.dumps(payload).encode()


class TestParseNotification:
    """Closed union on `type`."""

    def test_status_updated(self, notification):
        parsed = parse_notification(
            notification("tx-1", "COMPLETED", amount_usd="500.00", amount="0.01")
        )

        assert isinstance(parsed, TransactionStatusUpdated)
        event = parsed.data.to_event()
        assert event.tx_id == "tx-1"
        assert event.status == "COMPLETED"
        assert event.amount_usd == Decimal("500.00")
        assert event.amount_crypto == Decimal("0.01")
        assert event.destination_vault_id == "vault-1"
        assert event.destination_address == "tb1q-deposit-1"
        assert event.is_vault_destination

    def test_created(self, notification):
        parsed = parse_notification(
            notification("tx-1", "SUBMITTED", event_type="TRANSACTION_CREATED")
        )

        assert isinstance(parsed, TransactionCreated)

    def test_status_is_upper_cased(self, notification):
        event = parse_notification(notification("tx-1", "confirming")).data.to_event()

        assert event.status == "CONFIRMING"

    def test_top_level_amounts_used_as_fallback(self):
        parsed = parse_notification(
            body(
                {
                    "type": "TRANSACTION_STATUS_UPDATED",
                    "data": {
                        "id": "tx-2",
                        "status": "COMPLETED",
                        "amountUSD": 250,
                        "amount": "0.005",
                        "destination": {"type": "VAULT_ACCOUNT", "id": "7"},
                    },
                }
            )
        )

        event = parsed.data.to_event()
        assert event.amount_usd == Decimal("250")
        assert event.amount_crypto == Decimal("0.005")
        assert event.destination_address is None

    def test_unknown_fields_ignored(self, notification):
        payload = json.loads(notification("tx-1", "COMPLETED"))
        payload["data"]["networkRecords"] = [{"a": 1}]
        payload["createdAt"] = 1700000000

        assert parse_notification(body(payload)).data.id == "tx-1"

    def test_external_destination_not_vault(self, notification):
        event = parse_notification(
            notification("tx-1", "COMPLETED", destination_type="EXTERNAL_WALLET")
        ).data.to_event()

        assert not event.is_vault_destination

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"{}",
            body({"type": "VAULT_ACCOUNT_ADDED", "data": {"id": "1", "status": "x"}}),
            body({"type": "TRANSACTION_STATUS_UPDATED"}),
            body({"type": "TRANSACTION_STATUS_UPDATED", "data": {"status": "COMPLETED"}}),
            body({"type": "TRANSACTION_STATUS_UPDATED", "data": {"id": "", "status": "X"}}),
        ],
    )
    def test_malformed_rejected(self, raw):
        with pytest.raises(NotificationFormatError):
            parse_notification(raw)
