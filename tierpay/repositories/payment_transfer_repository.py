"""
Payment transfer repository.

Data access layer for PaymentTransfer model.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.payment_transfer import PaymentTransfer
from tierpay.repositories.base import BaseRepository


class PaymentTransferRepository(BaseRepository[PaymentTransfer]):
    """Payment transfer repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payment transfer repository."""
        super().__init__(PaymentTransfer, session)

    async def get_by_tx_id(self, tx_id: str) -> PaymentTransfer | None:
        """Get a counted transfer by custodian transaction id."""
        return await self.get_by(custodian_tx_id=tx_id)

    async def list_for_session(self, session_id: int) -> list[PaymentTransfer]:
        """Transfers counted toward a session, oldest first."""
        stmt = (
            select(PaymentTransfer)
            .where(PaymentTransfer.payment_session_id == session_id)
            .order_by(PaymentTransfer.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def totals_for_session(
        self, session_id: int
    ) -> tuple[Decimal | None, Decimal | None]:
        """
        Sum the amounts received by a session.

        Args:
            session_id: Payment session ID

        Returns:
            (usd, crypto); a total is None unless every transfer reported it
        """
        transfers = await self.list_for_session(session_id)
        if not transfers:
            return None, None

        usd_amounts = [t.amount_usd for t in transfers]
        crypto_amounts = [t.amount_crypto for t in transfers]
        usd = None if None in usd_amounts else sum(usd_amounts, Decimal("0"))
        crypto = (
            None if None in crypto_amounts else sum(crypto_amounts, Decimal("0"))
        )
        return usd, crypto
