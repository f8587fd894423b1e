"""
Payment session manager.

Creates purchase intents with a locked crypto quote and a deposit address,
and serves their status to the buyer.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.constants import (
    CRYPTO_QUANTUM,
    SESSION_STATUS_MESSAGES,
    UNKNOWN_STATUS_MESSAGE,
)
from tierpay.config.packages import PackageConfig
from tierpay.config.settings import settings
from tierpay.models.enums import PaymentSessionStatus
from tierpay.models.payment_session import PaymentSession
from tierpay.models.platform_activity import ActivityType
from tierpay.models.purchase import Purchase
from tierpay.models.types import utcnow
from tierpay.models.user import User
from tierpay.repositories.affiliate_status_repository import (
    AffiliateStatusRepository,
)
from tierpay.repositories.payment_session_repository import (
    PaymentSessionRepository,
)
from tierpay.repositories.platform_activity_repository import (
    PlatformActivityRepository,
)
from tierpay.repositories.user_repository import UserRepository
from tierpay.services.catalog import PackageCatalog
from tierpay.services.custodian.client import CustodianClient
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.utils.db_decorators import with_rollback_on_error
from tierpay.utils.exceptions import (
    InvalidUpgradeError,
    UnknownTierError,
    UnsupportedAssetError,
    UserNotFoundError,
)


@dataclass
class PurchaseTerms:
    """What the buyer pays and what commissions are based on."""

    package: PackageConfig
    amount_usd: Decimal
    is_upgrade: bool = False
    from_tier: str | None = None


@dataclass
class SessionStatusView:
    """Buyer-facing view of a payment session."""

    session_id: int
    purchase_id: int
    tier: str
    price_usd: Decimal
    amount_crypto: Decimal
    asset_id: str
    deposit_address: str
    deposit_tag: str | None
    status: str
    message: str
    custodian_status: str | None
    custodian_tx_id: str | None
    tx_hash: str | None
    amount_received: Decimal | None
    amount_received_crypto: Decimal | None
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_session(cls, session: PaymentSession) -> "SessionStatusView":
        """Build a view from a stored session."""
        return cls(
            session_id=session.id,
            purchase_id=session.purchase_id,
            tier=session.tier,
            price_usd=session.price_usd,
            amount_crypto=session.quoted_crypto_amount,
            asset_id=session.asset_id,
            deposit_address=session.deposit_address,
            deposit_tag=session.deposit_tag,
            status=session.status,
            message=SESSION_STATUS_MESSAGES.get(session.status, UNKNOWN_STATUS_MESSAGE),
            custodian_status=session.custodian_status,
            custodian_tx_id=session.custodian_tx_id,
            tx_hash=session.tx_hash,
            amount_received=session.amount_received_usd,
            amount_received_crypto=session.amount_received_crypto,
            expires_at=session.expires_at,
            created_at=session.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""

        def _str(value: Any) -> str | None:
            return None if value is None else str(value)

        return {
            "sessionId": self.session_id,
            "purchaseId": self.purchase_id,
            "tier": self.tier,
            "priceUsd": str(self.price_usd),
            "amountCrypto": str(self.amount_crypto),
            "assetId": self.asset_id,
            "depositAddress": self.deposit_address,
            "depositTag": self.deposit_tag,
            "status": self.status,
            "message": self.message,
            "custodianStatus": self.custodian_status,
            "custodianTxId": self.custodian_tx_id,
            "txHash": self.tx_hash,
            "amountReceived": _str(self.amount_received),
            "amountReceivedCrypto": _str(self.amount_received_crypto),
            "expiresAt": self.expires_at.isoformat(),
            "createdAt": self.created_at.isoformat(),
        }


def quote_crypto_amount(amount_usd: Decimal, rate_usd: Decimal) -> Decimal:
    """Convert USD to asset units at satoshi precision."""
    return (amount_usd / rate_usd).quantize(CRYPTO_QUANTUM, rounding=ROUND_HALF_UP)


class PaymentSessionManager:
    """
    Checkout session creation and lookup.

    Custodian calls (vault, asset activation, deposit address) all happen
    before the Purchase and PaymentSession rows are written, so a custodian
    failure never leaves an orphan purchase.
    """

    def __init__(
        self,
        session: AsyncSession,
        catalog: PackageCatalog,
        custodian: CustodianClient,
        rates: ExchangeRateProvider,
        supported_assets: list[str] | None = None,
        ttl_minutes: int | None = None,
    ) -> None:
        """Initialize manager."""
        self.session = session
        self.catalog = catalog
        self.custodian = custodian
        self.rates = rates
        self.supported_assets = (
            supported_assets
            if supported_assets is not None
            else settings.get_supported_assets()
        )
        self.ttl = timedelta(
            minutes=ttl_minutes or settings.payment_session_ttl_minutes
        )
        self.user_repo = UserRepository(session)
        self.session_repo = PaymentSessionRepository(session)
        self.affiliate_repo = AffiliateStatusRepository(session)
        self.activity_repo = PlatformActivityRepository(session)

    async def resolve_terms(self, user_id: int, tier: str) -> PurchaseTerms:
        """
        Work out price and commission base for a purchase.

        A user who already holds an active package may only move to a
        strictly higher one and pays the price difference.

        Raises:
            UnknownTierError: Tier unknown or inactive
            InvalidUpgradeError: Tier not above the current package
        """
        package = self.catalog.get_active(tier)
        if package is None:
            raise UnknownTierError(f"Unknown package: {tier}")

        status = await self.affiliate_repo.get_for_user(user_id)
        current = self.catalog.get(status.tier) if status and status.is_active else None

        if status and status.is_active and current is None:
            logger.warning(
                f"User {user_id} holds unknown package {status.tier}, "
                "treating purchase as new"
            )

        if current is None:
            return PurchaseTerms(package=package, amount_usd=package.price_usd)

        if package.level <= current.level:
            raise InvalidUpgradeError(
                f"Cannot move from {current.name} to {package.name}"
            )

        return PurchaseTerms(
            package=package,
            amount_usd=package.price_usd - current.price_usd,
            is_upgrade=True,
            from_tier=current.name,
        )

    async def ensure_vault(self, user: User) -> str:
        """
        Get the user's custodian vault, creating it if needed.

        A newly created vault id is committed right away so a later failure
        does not lose it.
        """
        if user.custodian_vault_id:
            if await self.custodian.vault_exists(user.custodian_vault_id):
                return user.custodian_vault_id
            logger.warning(
                f"Stored vault {user.custodian_vault_id} of user {user.id} "
                "not found at custodian, creating a new one"
            )

        vault_id = await self.custodian.create_vault(
            name=f"user-{user.id}", customer_ref_id=str(user.id)
        )
        user.custodian_vault_id = vault_id
        await self.session.commit()
        return vault_id

    @with_rollback_on_error
    async def create_session(
        self, user_id: int, tier: str, asset_id: str
    ) -> PaymentSession:
        """
        Create (or reuse) a payment session.

        Args:
            user_id: Buyer
            tier: Package key
            asset_id: Custodian asset id

        Returns:
            Pending payment session

        Raises:
            UserNotFoundError: Buyer does not exist
            UnknownTierError: Tier unknown or inactive
            UnsupportedAssetError: Asset not accepted
            InvalidUpgradeError: Tier not above the current package
            CustodianError: Custodian call failed
        """
        tier = tier.strip().lower()

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        if asset_id not in self.supported_assets:
            raise UnsupportedAssetError(f"Unsupported asset: {asset_id}")

        terms = await self.resolve_terms(user_id, tier)

        now = utcnow()
        existing = await self.session_repo.find_reusable_pending(
            user_id, tier, asset_id, now
        )
        if existing is not None:
            logger.info(f"Reusing payment session {existing.id} for user {user_id}")
            return existing

        # Quote and custodian calls, before any purchase row exists
        rate = await self.rates.get_usd_rate(asset_id)
        quoted = quote_crypto_amount(terms.amount_usd, rate)
        vault_id = await self.ensure_vault(user)
        await self.custodian.activate_asset(vault_id, asset_id)
        deposit = await self.custodian.create_deposit_address(
            vault_id, asset_id, description=f"{tier} for user {user_id}"
        )

        purchase = Purchase(
            user_id=user_id,
            tier=tier,
            amount_usd=terms.amount_usd,
            commission_base_usd=terms.amount_usd,
            is_upgrade=terms.is_upgrade,
            from_tier=terms.from_tier,
            status=PaymentSessionStatus.PENDING.value,
            referred_by_user_id=user.referred_by_user_id,
        )
        self.session.add(purchase)
        await self.session.flush()

        payment_session = PaymentSession(
            user_id=user_id,
            purchase_id=purchase.id,
            tier=tier,
            asset_id=asset_id,
            price_usd=terms.amount_usd,
            quoted_crypto_amount=quoted,
            exchange_rate_usd=rate,
            deposit_address=deposit.address,
            deposit_tag=deposit.tag,
            vault_account_id=vault_id,
            status=PaymentSessionStatus.PENDING.value,
            expires_at=now + self.ttl,
        )
        self.session.add(payment_session)
        await self.session.flush()

        self.activity_repo.record(
            ActivityType.PAYMENT_SESSION_CREATED,
            user_id=user_id,
            status=PaymentSessionStatus.PENDING.value,
            amount_usd=terms.amount_usd,
            metadata={
                "session_id": payment_session.id,
                "purchase_id": purchase.id,
                "tier": tier,
                "asset_id": asset_id,
                "quoted_crypto_amount": str(quoted),
                "exchange_rate_usd": str(rate),
                "is_upgrade": terms.is_upgrade,
            },
        )
        await self.session.commit()

        logger.bind(
            session_id=payment_session.id,
            user_id=user_id,
            tier=tier,
            asset_id=asset_id,
            amount_usd=str(terms.amount_usd),
            quoted=str(quoted),
        ).info("Payment session created")
        return payment_session

    async def get_session_status(
        self, session_id: int, user_id: int
    ) -> SessionStatusView | None:
        """
        Ownership-checked status lookup.

        Returns:
            Status view, or None if the session does not exist or belongs
            to another user
        """
        payment_session = await self.session_repo.get_by_id(session_id)
        if payment_session is None or payment_session.user_id != user_id:
            return None
        return SessionStatusView.from_session(payment_session)
