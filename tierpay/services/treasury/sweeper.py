"""
Treasury sweeper.

Moves settled funds from per-user vaults to the treasury vault. Runs from
the admin API and a scheduled job, never on the settlement path.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.constants import TREASURY_SWEEP_MAX_BATCH, CustodianTxStatus
from tierpay.models.enums import PaymentSessionStatus, TreasurySweepStatus
from tierpay.models.payment_session import PaymentSession
from tierpay.models.platform_activity import ActivityType
from tierpay.models.types import utcnow
from tierpay.repositories.payment_session_repository import (
    PaymentSessionRepository,
)
from tierpay.repositories.platform_activity_repository import (
    PlatformActivityRepository,
)
from tierpay.services.custodian.client import CustodianClient
from tierpay.utils.db_decorators import with_auto_commit
from tierpay.utils.exceptions import ConfigurationError, CustodianError, TierpayError


class SweepSkipReason:
    """Why a session was not swept."""

    NOT_FOUND = "not_found"
    NOT_COMPLETED = "not_completed"
    ALREADY_SWEPT = "already_swept"
    NO_AMOUNT = "no_amount"


@dataclass
class PendingSweep:
    """Completed session whose funds are still in the user vault."""

    session_id: int
    user_id: int
    purchase_id: int
    tier: str
    asset_id: str
    vault_account_id: str
    amount_usd: Decimal
    amount_crypto: Decimal
    treasury_sweep_status: str | None
    treasury_sweep_tx_id: str | None
    treasury_sweep_error: str | None
    created_at: datetime

    @classmethod
    def from_session(cls, session: PaymentSession) -> "PendingSweep":
        return cls(
            session_id=session.id,
            user_id=session.user_id,
            purchase_id=session.purchase_id,
            tier=session.tier,
            asset_id=session.asset_id,
            vault_account_id=session.vault_account_id,
            amount_usd=session.amount_received_usd or session.price_usd,
            amount_crypto=sweep_amount(session),
            treasury_sweep_status=session.treasury_sweep_status,
            treasury_sweep_tx_id=session.treasury_sweep_tx_id,
            treasury_sweep_error=session.treasury_sweep_error,
            created_at=session.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "userId": self.user_id,
            "purchaseId": self.purchase_id,
            "tier": self.tier,
            "assetId": self.asset_id,
            "vaultAccountId": self.vault_account_id,
            "amountUsd": str(self.amount_usd),
            "amountCrypto": str(self.amount_crypto),
            "treasurySweepStatus": self.treasury_sweep_status,
            "treasurySweepTxId": self.treasury_sweep_tx_id,
            "treasurySweepError": self.treasury_sweep_error,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class SweepTotals:
    """Aggregate of pending sweeps."""

    count: int = 0
    total_usd: Decimal = Decimal("0")
    total_crypto: Decimal = Decimal("0")

    def add(self, item: PendingSweep) -> None:
        self.count += 1
        self.total_usd += item.amount_usd
        self.total_crypto += item.amount_crypto


@dataclass
class SweepSummary:
    """Pending sweeps grouped by asset and by package."""

    treasury_vault_id: str | None
    candidates: list[PendingSweep]
    by_asset: dict[str, SweepTotals] = field(default_factory=dict)
    by_package: dict[str, SweepTotals] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "treasuryVaultId": self.treasury_vault_id,
            "pendingSweepCount": len(self.candidates),
            "aggregateByAsset": {
                asset: {
                    "count": totals.count,
                    "totalUsd": str(totals.total_usd),
                    "totalCrypto": str(totals.total_crypto),
                }
                for asset, totals in self.by_asset.items()
            },
            "aggregateByPackage": {
                tier: {"count": totals.count, "totalUsd": str(totals.total_usd)}
                for tier, totals in self.by_package.items()
            },
            "sessions": [item.to_dict() for item in self.candidates],
        }


@dataclass
class SweepOutcome:
    """Result of sweeping one session."""

    session_id: int
    skipped: bool = False
    reason: str | None = None
    tx_id: str | None = None
    status: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sessionId": self.session_id,
            "success": self.success,
            "skipped": self.skipped,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.tx_id:
            data["treasurySweepTxId"] = self.tx_id
        if self.status:
            data["treasurySweepStatus"] = self.status
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SweepBatchResult:
    """Outcomes of a batch sweep."""

    treasury_vault_id: str
    results: list[SweepOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.success and r.skipped)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "treasuryVaultId": self.treasury_vault_id,
            "requestedCount": len(self.results),
            "successCount": self.success_count,
            "skippedCount": self.skipped_count,
            "failedCount": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }


def sweep_amount(session: PaymentSession) -> Decimal:
    """Crypto amount to move: what was received, else what was quoted."""
    return session.amount_received_crypto or session.quoted_crypto_amount


def sweep_idempotency_key(session_id: int, attempt: int = 0) -> str:
    """
    Custodian external id of a session's treasury transfer.

    The key changes only after the custodian definitively failed or rejected
    the previous transfer; a retry after a timeout reuses it.
    """
    if attempt:
        return f"sweep-{session_id}-{attempt}"
    return f"sweep-{session_id}"


def is_rejection(error: CustodianError) -> bool:
    """The custodian answered and refused the request."""
    return error.http_status is not None and 400 <= error.http_status < 500


def _cap_limit(limit: int) -> int:
    return max(1, min(limit, TREASURY_SWEEP_MAX_BATCH))


class TreasurySweeper:
    """
    Treasury sweep operations.

    `custodian` may be omitted when only reading candidates or applying
    transfer status updates.
    """

    def __init__(
        self,
        session: AsyncSession,
        custodian: CustodianClient | None,
        treasury_vault_id: str | None,
    ) -> None:
        """Initialize sweeper."""
        self.session = session
        self.custodian = custodian
        self.treasury_vault_id = treasury_vault_id
        self.session_repo = PaymentSessionRepository(session)
        self.activity_repo = PlatformActivityRepository(session)

    def _require_transfer_config(self) -> tuple[CustodianClient, str]:
        if not self.treasury_vault_id:
            raise ConfigurationError("TREASURY_VAULT_ID is not configured")
        if self.custodian is None:
            raise ConfigurationError("Custodian client is not configured")
        return self.custodian, self.treasury_vault_id

    async def sweep_candidates(
        self,
        asset_id: str | None = None,
        limit: int = 100,
        only_failed: bool = False,
    ) -> list[PendingSweep]:
        """
        Completed sessions not yet swept (or whose sweep failed).

        Args:
            asset_id: Optional asset filter
            limit: Maximum rows (capped at 500)
            only_failed: Only previously failed sweeps

        Returns:
            Candidates, oldest first
        """
        sessions = await self.session_repo.find_sweep_candidates(
            asset_id=asset_id, limit=_cap_limit(limit), only_failed=only_failed
        )
        return [PendingSweep.from_session(s) for s in sessions]

    async def summarize(
        self, asset_id: str | None = None, limit: int = 100
    ) -> SweepSummary:
        """Candidates with totals by asset and by package."""
        candidates = await self.sweep_candidates(asset_id=asset_id, limit=limit)
        summary = SweepSummary(
            treasury_vault_id=self.treasury_vault_id, candidates=candidates
        )
        for item in candidates:
            summary.by_asset.setdefault(item.asset_id, SweepTotals()).add(item)
            summary.by_package.setdefault(item.tier, SweepTotals()).add(item)
        return summary

    async def sweep(self, session_id: int) -> SweepOutcome:
        """
        Transfer one completed session's funds to the treasury vault.

        The session row stays locked while the transfer is requested. A
        custodian failure is recorded on the session, not raised.

        Raises:
            ConfigurationError: Treasury vault or custodian not configured
        """
        custodian, treasury_vault_id = self._require_transfer_config()

        payment_session = await self.session_repo.get_for_update(session_id)
        if payment_session is None:
            await self.session.rollback()
            return SweepOutcome(session_id, skipped=True, reason=SweepSkipReason.NOT_FOUND)

        if payment_session.status != PaymentSessionStatus.COMPLETED.value:
            await self.session.rollback()
            return SweepOutcome(
                session_id, skipped=True, reason=SweepSkipReason.NOT_COMPLETED
            )

        if payment_session.treasury_sweep_status in (
            TreasurySweepStatus.SUBMITTED.value,
            TreasurySweepStatus.COMPLETED.value,
        ):
            outcome = SweepOutcome(
                session_id,
                skipped=True,
                reason=SweepSkipReason.ALREADY_SWEPT,
                tx_id=payment_session.treasury_sweep_tx_id,
                status=payment_session.treasury_sweep_status,
            )
            await self.session.rollback()
            return outcome

        amount = sweep_amount(payment_session)
        if not amount or amount <= 0:
            await self.session.rollback()
            return SweepOutcome(session_id, skipped=True, reason=SweepSkipReason.NO_AMOUNT)

        try:
            transfer = await custodian.create_transfer(
                asset_id=payment_session.asset_id,
                source_vault_id=payment_session.vault_account_id,
                destination_vault_id=treasury_vault_id,
                amount=amount,
                external_tx_id=sweep_idempotency_key(
                    session_id, payment_session.treasury_sweep_attempt
                ),
                note=f"Treasury sweep for payment session {session_id}",
            )
        except CustodianError as e:
            payment_session.treasury_sweep_status = TreasurySweepStatus.FAILED.value
            payment_session.treasury_sweep_error = str(e)[:1000]
            if is_rejection(e):
                payment_session.treasury_sweep_attempt += 1
            self.activity_repo.record(
                ActivityType.TREASURY_SWEEP,
                user_id=payment_session.user_id,
                status=TreasurySweepStatus.FAILED.value,
                amount_usd=payment_session.amount_received_usd,
                metadata={"session_id": session_id, "error": str(e)[:500]},
            )
            await self.session.commit()
            logger.bind(
                session_id=session_id,
                asset_id=payment_session.asset_id,
                error=str(e),
            ).error(f"Treasury sweep failed for session {session_id}")
            return SweepOutcome(
                session_id, status=TreasurySweepStatus.FAILED.value, error=str(e)
            )

        payment_session.treasury_sweep_tx_id = transfer.tx_id
        payment_session.treasury_sweep_status = TreasurySweepStatus.SUBMITTED.value
        payment_session.treasury_sweep_error = None
        self.activity_repo.record(
            ActivityType.TREASURY_SWEEP,
            user_id=payment_session.user_id,
            status=TreasurySweepStatus.SUBMITTED.value,
            amount_usd=payment_session.amount_received_usd,
            metadata={
                "session_id": session_id,
                "tx_id": transfer.tx_id,
                "asset_id": payment_session.asset_id,
                "amount": str(amount),
            },
        )
        await self.session.commit()

        logger.bind(
            session_id=session_id,
            tx_id=transfer.tx_id,
            asset_id=payment_session.asset_id,
            amount=str(amount),
        ).info("Treasury sweep submitted")
        return SweepOutcome(
            session_id,
            tx_id=transfer.tx_id,
            status=TreasurySweepStatus.SUBMITTED.value,
        )

    async def sweep_batch(
        self,
        session_ids: list[int] | None = None,
        asset_id: str | None = None,
        limit: int = 100,
        only_failed: bool = False,
    ) -> SweepBatchResult:
        """
        Sweep explicit sessions, or the oldest candidates.

        Raises:
            ConfigurationError: Treasury vault or custodian not configured
        """
        _, treasury_vault_id = self._require_transfer_config()

        if session_ids:
            targets = list(session_ids)[:TREASURY_SWEEP_MAX_BATCH]
        else:
            candidates = await self.sweep_candidates(
                asset_id=asset_id, limit=limit, only_failed=only_failed
            )
            targets = [c.session_id for c in candidates]

        batch = SweepBatchResult(treasury_vault_id=treasury_vault_id)
        for session_id in targets:
            try:
                batch.results.append(await self.sweep(session_id))
            except TierpayError as e:
                await self.session.rollback()
                batch.results.append(SweepOutcome(session_id, error=e.message))

        logger.info(
            f"Treasury sweep batch: {batch.success_count} submitted, "
            f"{batch.skipped_count} skipped, {batch.failed_count} failed"
        )
        return batch

    @with_auto_commit
    async def apply_transfer_update(self, tx_id: str, status: str) -> bool:
        """
        Record a status notification for a treasury transfer.

        Args:
            tx_id: Custodian transaction id of the sweep
            status: Custodian status

        Returns:
            True if a sweep with this transfer id exists
        """
        payment_session = await self.session_repo.find_by_sweep_tx_id(tx_id)
        if payment_session is None:
            logger.warning(f"Treasury transfer {tx_id} matches no sweep")
            return False

        status = status.upper()
        if status == CustodianTxStatus.COMPLETED:
            payment_session.treasury_sweep_status = TreasurySweepStatus.COMPLETED.value
            payment_session.treasury_swept_at = utcnow()
            payment_session.treasury_sweep_error = None
        elif status in CustodianTxStatus.FAILURES:
            # Redelivered failures must not skip a key.
            if payment_session.treasury_sweep_status != TreasurySweepStatus.FAILED.value:
                payment_session.treasury_sweep_attempt += 1
            payment_session.treasury_sweep_status = TreasurySweepStatus.FAILED.value
            payment_session.treasury_sweep_error = f"Custodian status {status}"
        else:
            return True

        logger.info(
            f"Treasury sweep {tx_id} of session {payment_session.id} -> "
            f"{payment_session.treasury_sweep_status}"
        )
        return True
