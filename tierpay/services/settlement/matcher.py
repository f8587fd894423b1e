"""
Notification to payment session matching.
"""

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.settings import settings
from tierpay.models.enums import PaymentSessionStatus
from tierpay.models.payment_session import PaymentSession
from tierpay.repositories.payment_session_repository import (
    PaymentSessionRepository,
)
from tierpay.services.settlement.notification import TransferEvent


@dataclass
class SessionMatch:
    """Matched session and the rule that found it."""

    session: PaymentSession
    matched_by: str  # tx_id, address, vault


def amount_fits(
    received: Decimal, expected: Decimal, tolerance_percent: Decimal
) -> bool:
    """Check that a transfer pays `expected` and not a larger package."""
    margin = expected * tolerance_percent / Decimal("100")
    return expected - margin <= received <= expected + margin


class SessionMatcher:
    """
    Finds the payment session a transfer belongs to.

    Order:
        1. A session that already recorded or counted the custodian tx id
        2. Open sessions on the deposit address
        3. The most recent session on the deposit address, any status
        4. Open sessions of the destination vault for the same asset

    Account-based assets reuse one address per vault, so steps 2 and 4 can
    return several open sessions; the one whose outstanding amount fits the
    transfer wins, otherwise the most recent.
    """

    def __init__(
        self, session: AsyncSession, tolerance_percent: Decimal | None = None
    ) -> None:
        self.session_repo = PaymentSessionRepository(session)
        self.tolerance_percent = (
            tolerance_percent
            if tolerance_percent is not None
            else settings.payment_tolerance_percent
        )

    async def match(self, event: TransferEvent) -> SessionMatch | None:
        """Match a transfer; None if nothing fits."""
        found = await self.session_repo.find_by_custodian_tx_id(event.tx_id)
        if found is not None:
            return SessionMatch(found, "tx_id")

        if event.destination_address:
            candidates = await self.session_repo.find_open_by_deposit_address(
                event.destination_address
            )
            if candidates:
                return SessionMatch(self._pick_by_amount(candidates, event), "address")

            found = await self.session_repo.find_latest_by_deposit_address(
                event.destination_address
            )
            if found is not None:
                return SessionMatch(found, "address")

        if event.destination_vault_id:
            candidates = await self.session_repo.find_open_by_vault(
                event.destination_vault_id, event.asset_id
            )
            if candidates:
                return SessionMatch(self._pick_by_amount(candidates, event), "vault")

        logger.bind(
            asset_id=event.asset_id,
            vault_id=event.destination_vault_id,
            amount_usd=str(event.amount_usd),
        ).warning(f"No payment session matches tx {event.tx_id}")
        return None

    def _pick_by_amount(
        self, candidates: list[PaymentSession], event: TransferEvent
    ) -> PaymentSession:
        """Pick the open session whose outstanding amount the transfer pays."""
        if len(candidates) == 1:
            return candidates[0]

        for candidate in candidates:
            outstanding = self._outstanding(candidate, event)
            if outstanding is None:
                break
            expected, received = outstanding
            if amount_fits(received, expected, self.tolerance_percent):
                logger.debug(
                    f"Tx {event.tx_id} matched session {candidate.id} by amount"
                )
                return candidate

        logger.warning(
            f"Tx {event.tx_id}: no open session fits the amount, "
            f"using most recent session {candidates[0].id}"
        )
        return candidates[0]

    @staticmethod
    def _outstanding(
        candidate: PaymentSession, event: TransferEvent
    ) -> tuple[Decimal, Decimal] | None:
        """(expected, received) in USD when reported, else in crypto."""
        partial = candidate.status == PaymentSessionStatus.PARTIAL.value
        if event.amount_usd is not None:
            expected = candidate.price_usd
            if partial and candidate.amount_received_usd is not None:
                expected -= candidate.amount_received_usd
            return expected, event.amount_usd
        if event.amount_crypto is not None:
            expected = candidate.quoted_crypto_amount
            if partial and candidate.amount_received_crypto is not None:
                expected -= candidate.amount_received_crypto
            return expected, event.amount_crypto
        return None
