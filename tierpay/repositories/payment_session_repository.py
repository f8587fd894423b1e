"""
Payment session repository.

Matching, locking and batch queries for PaymentSession.
"""

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.enums import (
    OPEN_SESSION_STATUSES,
    PaymentSessionStatus,
    TreasurySweepStatus,
)
from tierpay.models.payment_session import PaymentSession
from tierpay.models.payment_transfer import PaymentTransfer
from tierpay.models.purchase import Purchase
from tierpay.repositories.base import BaseRepository

_OPEN_STATUS_VALUES = [status.value for status in OPEN_SESSION_STATUSES]


class PaymentSessionRepository(BaseRepository[PaymentSession]):
    """Payment session repository with matching queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payment session repository."""
        super().__init__(PaymentSession, session)

    async def find_reusable_pending(
        self, user_id: int, tier: str, asset_id: str, now: datetime
    ) -> PaymentSession | None:
        """
        Find an unexpired pending session for the same tier and asset.

        Args:
            user_id: Buyer
            tier: Package key
            asset_id: Custodian asset id
            now: Current time

        Returns:
            Most recent reusable session or None
        """
        stmt = (
            select(PaymentSession)
            .where(
                PaymentSession.user_id == user_id,
                PaymentSession.tier == tier,
                PaymentSession.asset_id == asset_id,
                PaymentSession.status == PaymentSessionStatus.PENDING.value,
                PaymentSession.expires_at > now,
            )
            .order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_by_deposit_address(self, address: str) -> list[PaymentSession]:
        """Open (pending, confirming, partial) sessions on an address, newest first."""
        stmt = (
            select(PaymentSession)
            .where(
                PaymentSession.deposit_address == address,
                PaymentSession.status.in_(_OPEN_STATUS_VALUES),
            )
            .order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_latest_by_deposit_address(self, address: str) -> PaymentSession | None:
        """Most recent session issued for a deposit address, any status."""
        stmt = (
            select(PaymentSession)
            .where(PaymentSession.deposit_address == address)
            .order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_custodian_tx_id(self, tx_id: str) -> PaymentSession | None:
        """Session that already recorded or counted a custodian transaction."""
        counted = select(PaymentTransfer.payment_session_id).where(
            PaymentTransfer.custodian_tx_id == tx_id
        )
        stmt = (
            select(PaymentSession)
            .where(
                or_(
                    PaymentSession.custodian_tx_id == tx_id,
                    PaymentSession.id.in_(counted),
                )
            )
            .order_by(PaymentSession.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_open_by_vault(
        self, vault_id: str, asset_id: str | None = None
    ) -> list[PaymentSession]:
        """
        Open sessions of a vault, newest first.

        Args:
            vault_id: Custodian vault account
            asset_id: Restrict to sessions paying with this asset

        Returns:
            Pending, confirming and partial sessions
        """
        stmt = select(PaymentSession).where(
            PaymentSession.vault_account_id == vault_id,
            PaymentSession.status.in_(_OPEN_STATUS_VALUES),
        )
        if asset_id:
            stmt = stmt.where(PaymentSession.asset_id == asset_id)

        stmt = stmt.order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_sweep_tx_id(self, tx_id: str) -> PaymentSession | None:
        """Session whose treasury transfer has this custodian id."""
        return await self.get_by(treasury_sweep_tx_id=tx_id)

    async def expire_stale(self, now: datetime) -> int:
        """
        Expire pending sessions past their expiry in one batched update.

        The purchases of the expired sessions are moved to expired as well.

        Args:
            now: Current time

        Returns:
            Number of sessions expired
        """
        stmt = (
            update(PaymentSession)
            .where(
                PaymentSession.status == PaymentSessionStatus.PENDING.value,
                PaymentSession.expires_at < now,
            )
            .values(status=PaymentSessionStatus.EXPIRED.value, updated_at=now)
            .returning(PaymentSession.purchase_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        purchase_ids = [row[0] for row in result.all()]

        if purchase_ids:
            await self.session.execute(
                update(Purchase)
                .where(
                    Purchase.id.in_(purchase_ids),
                    Purchase.status == PaymentSessionStatus.PENDING.value,
                )
                .values(status=PaymentSessionStatus.EXPIRED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )

        return len(purchase_ids)

    async def find_sweep_candidates(
        self,
        asset_id: str | None = None,
        limit: int = 100,
        only_failed: bool = False,
    ) -> list[PaymentSession]:
        """
        Completed sessions whose funds are not yet in the treasury.

        Args:
            asset_id: Optional asset filter
            limit: Maximum rows
            only_failed: Only sessions whose previous sweep failed

        Returns:
            Sessions ordered oldest first
        """
        failed = PaymentSession.treasury_sweep_status == TreasurySweepStatus.FAILED.value
        stmt = select(PaymentSession).where(
            PaymentSession.status == PaymentSessionStatus.COMPLETED.value,
            failed if only_failed else or_(
                PaymentSession.treasury_sweep_tx_id.is_(None), failed
            ),
        )
        if asset_id:
            stmt = stmt.where(PaymentSession.asset_id == asset_id)

        stmt = stmt.order_by(PaymentSession.created_at, PaymentSession.id).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
