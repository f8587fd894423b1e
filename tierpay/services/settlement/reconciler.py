"""
Settlement reconciler.

Drives the payment session state machine from custodian notifications.
Delivery is at-least-once, possibly out of order and concurrent, so every
state change re-reads the session under a row lock. Each transfer is counted
once through the received-transfer ledger, and completion is guarded by the
revenue event unique constraints.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.constants import CustodianTxStatus
from tierpay.config.settings import settings
from tierpay.models.enums import PaymentSessionStatus, RevenueSource
from tierpay.models.payment_session import PaymentSession
from tierpay.models.payment_transfer import PaymentTransfer
from tierpay.models.platform_activity import ActivityType
from tierpay.models.purchase import Purchase
from tierpay.models.revenue_event import RevenueEvent
from tierpay.repositories.affiliate_status_repository import (
    AffiliateStatusRepository,
)
from tierpay.repositories.payment_session_repository import (
    PaymentSessionRepository,
)
from tierpay.repositories.payment_transfer_repository import (
    PaymentTransferRepository,
)
from tierpay.repositories.platform_activity_repository import (
    PlatformActivityRepository,
)
from tierpay.repositories.purchase_repository import PurchaseRepository
from tierpay.repositories.revenue_event_repository import RevenueEventRepository
from tierpay.services.catalog import PackageCatalog
from tierpay.services.commission.distributor import CommissionDistributor
from tierpay.services.settlement.matcher import SessionMatcher
from tierpay.services.settlement.notification import (
    TransactionCreated,
    TransactionStatusUpdated,
    TransferEvent,
)
from tierpay.services.treasury.sweeper import TreasurySweeper
from tierpay.utils.db_decorators import with_rollback_on_error

_PENDING = PaymentSessionStatus.PENDING
_CONFIRMING = PaymentSessionStatus.CONFIRMING
_PARTIAL = PaymentSessionStatus.PARTIAL
_COMPLETED = PaymentSessionStatus.COMPLETED
_FAILED = PaymentSessionStatus.FAILED
_EXPIRED = PaymentSessionStatus.EXPIRED


class SettlementOutcome(str, Enum):
    """What a notification did to the ledger."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    CONFIRMING = "confirming"
    FAILED = "failed"
    STATUS_RECORDED = "status_recorded"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"
    LATE_PAYMENT = "late_payment"
    UNMATCHED = "unmatched"
    TREASURY_UPDATE = "treasury_update"
    NOT_VAULT_DESTINATION = "not_vault_destination"


@dataclass
class ReconcileResult:
    """Outcome of one notification."""

    outcome: SettlementOutcome
    session_id: int | None = None
    revenue_event_id: int | None = None
    commissions: int = 0


def is_sufficient(
    received: Decimal, expected: Decimal, tolerance_percent: Decimal
) -> bool:
    """Check a received amount against the expected one with tolerance."""
    minimum = expected * (Decimal("1") - tolerance_percent / Decimal("100"))
    return received >= minimum


class SettlementReconciler:
    """
    Applies custodian notifications to payment sessions.

    Each call runs in the caller's session and commits its own changes;
    any database error rolls the whole step back and propagates.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: PackageCatalog,
        tolerance_percent: Decimal | None = None,
        treasury_vault_id: str | None = None,
    ) -> None:
        """Initialize reconciler."""
        self.session = session
        self.catalog = catalog
        self.tolerance_percent = (
            tolerance_percent
            if tolerance_percent is not None
            else settings.payment_tolerance_percent
        )
        self.treasury_vault_id = (
            treasury_vault_id
            if treasury_vault_id is not None
            else settings.treasury_vault_id
        )
        self.matcher = SessionMatcher(session, self.tolerance_percent)
        self.session_repo = PaymentSessionRepository(session)
        self.transfer_repo = PaymentTransferRepository(session)
        self.purchase_repo = PurchaseRepository(session)
        self.revenue_repo = RevenueEventRepository(session)
        self.affiliate_repo = AffiliateStatusRepository(session)
        self.activity_repo = PlatformActivityRepository(session)

    @with_rollback_on_error
    async def handle(
        self, notification: TransactionCreated | TransactionStatusUpdated
    ) -> ReconcileResult:
        """
        Apply one verified notification.

        Args:
            notification: Parsed webhook payload

        Returns:
            Outcome for logging and the HTTP response
        """
        event = notification.data.to_event()

        if not event.is_vault_destination:
            logger.debug(
                f"Ignoring tx {event.tx_id}: destination {event.destination_type}"
            )
            return ReconcileResult(SettlementOutcome.NOT_VAULT_DESTINATION)

        if self.treasury_vault_id and event.destination_vault_id == self.treasury_vault_id:
            sweeper = TreasurySweeper(self.session, None, self.treasury_vault_id)
            await sweeper.apply_transfer_update(event.tx_id, event.status)
            return ReconcileResult(SettlementOutcome.TREASURY_UPDATE)

        match = await self.matcher.match(event)
        if match is None:
            self.activity_repo.record(
                ActivityType.UNEXPECTED_PAYMENT,
                status=event.status,
                amount_usd=event.amount_usd,
                metadata=self._event_metadata(event),
            )
            await self.session.commit()
            return ReconcileResult(SettlementOutcome.UNMATCHED)

        payment_session = match.session
        logger.info(
            f"Tx {event.tx_id} ({event.status}) matched session "
            f"{payment_session.id} by {match.matched_by}"
        )

        if isinstance(notification, TransactionCreated) and not payment_session.is_terminal:
            self.activity_repo.record(
                ActivityType.PAYMENT_DETECTED,
                user_id=payment_session.user_id,
                status=payment_session.status,
                amount_usd=event.amount_usd,
                metadata=self._event_metadata(event, payment_session),
            )

        if event.status == CustodianTxStatus.COMPLETED:
            return await self._handle_completed(payment_session.id, event)
        if event.status == CustodianTxStatus.CONFIRMING:
            return await self._handle_confirming(payment_session.id, event)
        if event.status in CustodianTxStatus.FAILURES:
            return await self._handle_failed(payment_session.id, event)
        return await self._handle_intermediate(payment_session.id, event)

    async def _lock(self, session_id: int) -> PaymentSession:
        locked = await self.session_repo.get_for_update(session_id)
        if locked is None:
            raise LookupError(f"Payment session {session_id} disappeared")
        return locked

    async def _handle_terminal(
        self, payment_session: PaymentSession, event: TransferEvent
    ) -> ReconcileResult:
        """Record a notification for a session that can no longer change."""
        status = payment_session.session_status

        if status == _COMPLETED and event.status == CustodianTxStatus.COMPLETED and (
            payment_session.custodian_tx_id == event.tx_id
            or await self.revenue_repo.get_by_custodian_tx_id(event.tx_id) is not None
            or await self.transfer_repo.get_by_tx_id(event.tx_id) is not None
        ):
            await self.session.commit()
            logger.info(f"Tx {event.tx_id} already processed (session {payment_session.id})")
            return ReconcileResult(
                SettlementOutcome.ALREADY_PROCESSED, session_id=payment_session.id
            )

        late = status == _EXPIRED and event.status == CustodianTxStatus.COMPLETED
        self.activity_repo.record(
            ActivityType.LATE_PAYMENT if late else ActivityType.NOTIFICATION_IGNORED,
            user_id=payment_session.user_id,
            status=payment_session.status,
            amount_usd=event.amount_usd,
            metadata=self._event_metadata(event, payment_session),
        )
        await self.session.commit()

        if late:
            logger.bind(tx_id=event.tx_id, amount_usd=str(event.amount_usd)).warning(
                f"Late payment for expired session {payment_session.id}, "
                "manual review required"
            )
            return ReconcileResult(SettlementOutcome.LATE_PAYMENT, session_id=payment_session.id)

        logger.info(
            f"Ignoring {event.status} for {payment_session.status} session "
            f"{payment_session.id}"
        )
        return ReconcileResult(SettlementOutcome.IGNORED, session_id=payment_session.id)

    def _is_paid(
        self,
        payment_session: PaymentSession,
        received_usd: Decimal | None,
        received_crypto: Decimal | None,
    ) -> bool:
        if received_usd is not None:
            return is_sufficient(
                received_usd, payment_session.price_usd, self.tolerance_percent
            )
        if received_crypto is not None:
            return is_sufficient(
                received_crypto,
                payment_session.quoted_crypto_amount,
                self.tolerance_percent,
            )
        return False

    async def _handle_completed(
        self, session_id: int, event: TransferEvent
    ) -> ReconcileResult:
        payment_session = await self._lock(session_id)
        if payment_session.is_terminal:
            return await self._handle_terminal(payment_session, event)

        if (
            await self.revenue_repo.get_by_custodian_tx_id(event.tx_id) is not None
            or await self.transfer_repo.get_by_tx_id(event.tx_id) is not None
        ):
            await self.session.commit()
            logger.info(f"Tx {event.tx_id} already counted for session {session_id}")
            return ReconcileResult(
                SettlementOutcome.ALREADY_PROCESSED, session_id=session_id
            )

        try:
            self.session.add(
                PaymentTransfer(
                    payment_session_id=session_id,
                    custodian_tx_id=event.tx_id,
                    amount_usd=event.amount_usd,
                    amount_crypto=event.amount_crypto,
                    tx_hash=event.tx_hash,
                )
            )
            await self.session.flush()

            received_usd, received_crypto = await self.transfer_repo.totals_for_session(
                session_id
            )
            if not self._is_paid(payment_session, received_usd, received_crypto):
                return await self._mark_partial(
                    payment_session, event, received_usd, received_crypto
                )
            return await self._complete(
                payment_session, event, received_usd, received_crypto
            )
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                f"Tx {event.tx_id} already processed for session {session_id} "
                "(concurrent delivery)"
            )
            return ReconcileResult(
                SettlementOutcome.ALREADY_PROCESSED, session_id=session_id
            )

    async def _complete(
        self,
        payment_session: PaymentSession,
        event: TransferEvent,
        received_usd: Decimal | None,
        received_crypto: Decimal | None,
    ) -> ReconcileResult:
        """Settle a session: revenue event, commissions, package activation."""
        purchase: Purchase | None = await self.purchase_repo.get_by_id(
            payment_session.purchase_id
        )
        if purchase is None:
            raise LookupError(f"Purchase {payment_session.purchase_id} missing")

        revenue_event = RevenueEvent(
            user_id=payment_session.user_id,
            purchase_id=purchase.id,
            payment_session_id=payment_session.id,
            custodian_tx_id=event.tx_id,
            source=(
                RevenueSource.MEMBERSHIP_UPGRADE.value
                if purchase.is_upgrade
                else RevenueSource.MEMBERSHIP_PURCHASE.value
            ),
            amount_usd=purchase.commission_base_usd,
            tier=purchase.tier,
        )
        self.session.add(revenue_event)
        await self.session.flush()

        distribution = await CommissionDistributor(
            self.session, self.catalog
        ).distribute(revenue_event)

        payment_session.status = _COMPLETED.value
        payment_session.custodian_status = event.status
        payment_session.custodian_tx_id = event.tx_id
        payment_session.tx_hash = event.tx_hash or payment_session.tx_hash
        payment_session.amount_received_usd = received_usd
        payment_session.amount_received_crypto = received_crypto
        purchase.status = _COMPLETED.value

        package = self.catalog.get(purchase.tier)
        if package is not None:
            await self.affiliate_repo.upsert_tier(
                payment_session.user_id, package.name, package.level
            )
        else:
            logger.error(
                f"Completed purchase {purchase.id} has tier {purchase.tier} "
                "missing from the catalog; affiliate status not updated"
            )

        self.activity_repo.record(
            ActivityType.PAYMENT_COMPLETED,
            user_id=payment_session.user_id,
            status=_COMPLETED.value,
            amount_usd=received_usd,
            metadata={
                **self._event_metadata(event, payment_session),
                "revenue_event_id": revenue_event.id,
                "commission_base": str(purchase.commission_base_usd),
                "commissions": len(distribution.payouts),
            },
        )
        await self.session.commit()

        logger.bind(
            session_id=payment_session.id,
            user_id=payment_session.user_id,
            tier=purchase.tier,
            tx_id=event.tx_id,
            amount_usd=str(received_usd),
            revenue_event_id=revenue_event.id,
            commissions=len(distribution.payouts),
        ).info("Payment completed")
        return ReconcileResult(
            SettlementOutcome.COMPLETED,
            session_id=payment_session.id,
            revenue_event_id=revenue_event.id,
            commissions=len(distribution.payouts),
        )

    async def _mark_partial(
        self,
        payment_session: PaymentSession,
        event: TransferEvent,
        received_usd: Decimal | None,
        received_crypto: Decimal | None,
    ) -> ReconcileResult:
        payment_session.status = _PARTIAL.value
        payment_session.custodian_status = event.status
        payment_session.custodian_tx_id = event.tx_id
        payment_session.tx_hash = event.tx_hash or payment_session.tx_hash
        payment_session.amount_received_usd = received_usd
        payment_session.amount_received_crypto = received_crypto

        purchase = await self.purchase_repo.get_by_id(payment_session.purchase_id)
        if purchase is not None:
            purchase.status = _PARTIAL.value

        self.activity_repo.record(
            ActivityType.PARTIAL_PAYMENT,
            user_id=payment_session.user_id,
            status=_PARTIAL.value,
            amount_usd=received_usd,
            metadata={
                **self._event_metadata(event, payment_session),
                "expected_usd": str(payment_session.price_usd),
                "expected_crypto": str(payment_session.quoted_crypto_amount),
            },
        )
        await self.session.commit()

        logger.bind(tx_id=event.tx_id, received_crypto=str(received_crypto)).warning(
            f"Partial payment for session {payment_session.id}: "
            f"received ${received_usd} of ${payment_session.price_usd}"
        )
        return ReconcileResult(SettlementOutcome.PARTIAL, session_id=payment_session.id)

    async def _handle_confirming(
        self, session_id: int, event: TransferEvent
    ) -> ReconcileResult:
        payment_session = await self._lock(session_id)
        if payment_session.is_terminal:
            return await self._handle_terminal(payment_session, event)

        payment_session.custodian_status = event.status
        payment_session.tx_hash = event.tx_hash or payment_session.tx_hash

        if payment_session.status == _PARTIAL.value:
            # Accumulated amounts and the partial tx id stay as they are
            await self.session.commit()
            return ReconcileResult(
                SettlementOutcome.STATUS_RECORDED, session_id=session_id
            )

        payment_session.custodian_tx_id = event.tx_id
        if event.amount_usd is not None:
            payment_session.amount_received_usd = event.amount_usd
        if event.amount_crypto is not None:
            payment_session.amount_received_crypto = event.amount_crypto

        if payment_session.status == _PENDING.value:
            payment_session.status = _CONFIRMING.value
            purchase = await self.purchase_repo.get_by_id(payment_session.purchase_id)
            if purchase is not None:
                purchase.status = _CONFIRMING.value
            self.activity_repo.record(
                ActivityType.PAYMENT_CONFIRMING,
                user_id=payment_session.user_id,
                status=_CONFIRMING.value,
                amount_usd=event.amount_usd,
                metadata=self._event_metadata(event, payment_session),
            )

        await self.session.commit()
        logger.info(f"Session {session_id} confirming (tx {event.tx_id})")
        return ReconcileResult(SettlementOutcome.CONFIRMING, session_id=session_id)

    async def _handle_failed(
        self, session_id: int, event: TransferEvent
    ) -> ReconcileResult:
        payment_session = await self._lock(session_id)
        if payment_session.is_terminal:
            return await self._handle_terminal(payment_session, event)

        payment_session.custodian_status = event.status

        if payment_session.status == _PARTIAL.value:
            # Funds already received, the session stays partial
            await self.session.commit()
            logger.warning(
                f"{event.status} for partial session {session_id} (tx {event.tx_id})"
            )
            return ReconcileResult(
                SettlementOutcome.STATUS_RECORDED, session_id=session_id
            )

        payment_session.status = _FAILED.value
        payment_session.custodian_tx_id = event.tx_id
        purchase = await self.purchase_repo.get_by_id(payment_session.purchase_id)
        if purchase is not None:
            purchase.status = _FAILED.value

        self.activity_repo.record(
            ActivityType.PAYMENT_FAILED,
            user_id=payment_session.user_id,
            status=_FAILED.value,
            amount_usd=event.amount_usd,
            metadata=self._event_metadata(event, payment_session),
        )
        await self.session.commit()

        logger.bind(tx_id=event.tx_id).warning(
            f"Payment failed for session {session_id}: {event.status}"
        )
        return ReconcileResult(SettlementOutcome.FAILED, session_id=session_id)

    async def _handle_intermediate(
        self, session_id: int, event: TransferEvent
    ) -> ReconcileResult:
        payment_session = await self._lock(session_id)
        if payment_session.is_terminal:
            return await self._handle_terminal(payment_session, event)

        payment_session.custodian_status = event.status
        if payment_session.status != _PARTIAL.value:
            payment_session.custodian_tx_id = event.tx_id
        await self.session.commit()

        logger.debug(f"Session {session_id}: custodian status {event.status}")
        return ReconcileResult(SettlementOutcome.STATUS_RECORDED, session_id=session_id)

    @staticmethod
    def _event_metadata(
        event: TransferEvent, payment_session: PaymentSession | None = None
    ) -> dict:
        metadata = {
            "tx_id": event.tx_id,
            "custodian_status": event.status,
            "asset_id": event.asset_id,
            "vault_id": event.destination_vault_id,
            "destination_address": event.destination_address,
            "amount_usd": None if event.amount_usd is None else str(event.amount_usd),
            "amount_crypto": None if event.amount_crypto is None else str(event.amount_crypto),
            "tx_hash": event.tx_hash,
        }
        if payment_session is not None:
            metadata["session_id"] = payment_session.id
        return metadata
