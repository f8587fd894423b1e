"""Pytest configuration and shared fixtures for all tests."""

import json
import os

# Minimal environment for Settings; must be set before tierpay is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("SUPPORTED_ASSETS", "BTC_TEST,ETH_TEST5")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")
os.environ.setdefault("TREASURY_VAULT_ID", "treasury-vault")
os.environ.setdefault("PAYMENT_TOLERANCE_PERCENT", "2")

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from tierpay.config.database import create_session_maker
from tierpay.config.packages import PACKAGE_SEED
from tierpay.models import (
    AffiliateStatus,
    Base,
    PaymentSession,
    PaymentSessionStatus,
    Purchase,
    User,
)
from tierpay.models.types import utcnow
from tierpay.services.catalog import PackageCatalog
from tierpay.services.custodian.client import DepositAddress, TransferResult


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test engine."""
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    """Database session for one test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def catalog():
    """Catalog built from the bundled package definitions."""
    return PackageCatalog.from_seed()


@pytest.fixture
def mock_custodian():
    """Mock custodian API client."""
    custodian = AsyncMock()
    custodian.create_vault = AsyncMock(return_value="vault-new")
    custodian.vault_exists = AsyncMock(return_value=True)
    custodian.activate_asset = AsyncMock(return_value=None)
    custodian.create_deposit_address = AsyncMock(
        return_value=DepositAddress(asset_id="BTC_TEST", address="tb1q-deposit-1")
    )
    custodian.create_transfer = AsyncMock(
        return_value=TransferResult(tx_id="sweep-tx-1", status="SUBMITTED")
    )
    custodian.close = AsyncMock()
    return custodian


@pytest.fixture
def mock_rates():
    """Mock exchange rate provider quoting 50,000 USD per coin."""
    rates = AsyncMock()
    rates.get_usd_rate = AsyncMock(return_value=Decimal("50000"))
    rates.close = AsyncMock()
    return rates


@pytest.fixture
def make_user(session):
    """
    Factory for users, optionally holding a package.

    Usage:
        sponsor = await make_user("sponsor@example.com", tier="gold")
        buyer = await make_user("buyer@example.com", referred_by=sponsor)
    """

    async def _make_user(
        email: str,
        referred_by: User | None = None,
        tier: str | None = None,
        is_active: bool = True,
        referral_code: str | None = None,
        vault_id: str | None = None,
    ) -> User:
        user = User(
            email=email,
            referral_code=referral_code or email.split("@")[0].upper(),
            referred_by_user_id=referred_by.id if referred_by else None,
            custodian_vault_id=vault_id,
        )
        session.add(user)
        await session.flush()

        if tier is not None:
            session.add(
                AffiliateStatus(
                    user_id=user.id,
                    tier=tier,
                    tier_depth_limit=PACKAGE_SEED[tier].level,
                    is_active=is_active,
                )
            )
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_payment_session(session):
    """
    Factory for a purchase with its payment session.

    Defaults describe a fresh $500 gold checkout quoted at 0.01 BTC_TEST.
    """

    async def _make_payment_session(
        user: User,
        tier: str = "gold",
        price_usd: Decimal = Decimal("500.00"),
        quoted_crypto: Decimal = Decimal("0.01000000"),
        asset_id: str = "BTC_TEST",
        deposit_address: str = "tb1q-deposit-1",
        vault_account_id: str = "vault-1",
        status: PaymentSessionStatus = PaymentSessionStatus.PENDING,
        expires_in: timedelta = timedelta(minutes=30),
        is_upgrade: bool = False,
        **session_fields,
    ) -> PaymentSession:
        purchase = Purchase(
            user_id=user.id,
            tier=tier,
            amount_usd=price_usd,
            commission_base_usd=price_usd,
            is_upgrade=is_upgrade,
            status=status.value,
            referred_by_user_id=user.referred_by_user_id,
        )
        session.add(purchase)
        await session.flush()

        payment_session = PaymentSession(
            user_id=user.id,
            purchase_id=purchase.id,
            tier=tier,
            asset_id=asset_id,
            price_usd=price_usd,
            quoted_crypto_amount=quoted_crypto,
            exchange_rate_usd=Decimal("50000"),
            deposit_address=deposit_address,
            vault_account_id=vault_account_id,
            status=status.value,
            expires_at=utcnow() + expires_in,
            **session_fields,
        )
        session.add(payment_session)
        await session.commit()
        return payment_session

    return _make_payment_session


@pytest.fixture
def notification():
    """
    Builder for raw custodian notification bodies.

    Usage:
        body = notification("tx-1", "COMPLETED", amount_usd="500")
    """

    def _notification(
        tx_id: str,
        status: str,
        amount_usd: str | None = None,
        amount: str | None = None,
        destination_address: str | None = "tb1q-deposit-1",
        vault_id: str = "vault-1",
        destination_type: str = "VAULT_ACCOUNT",
        event_type: str = "TRANSACTION_STATUS_UPDATED",
        tx_hash: str | None = None,
        asset_id: str = "BTC_TEST",
    ) -> bytes:
        data = {
            "id": tx_id,
            "status": status,
            "assetId": asset_id,
            "destination": {"type": destination_type, "id": vault_id},
            "amountInfo": {},
        }
        if destination_address is not None:
            data["destinationAddress"] = destination_address
        if amount_usd is not None:
            data["amountInfo"]["amountUSD"] = amount_usd
        if amount is not None:
            data["amountInfo"]["amount"] = amount
        if tx_hash is not None:
            data["txHash"] = tx_hash
        return json.dumps({"type": event_type, "data": data}).encode()

    return _notification
