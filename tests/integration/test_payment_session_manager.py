"""
Integration tests for checkout session creation.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tierpay.models import PaymentSessionStatus, Purchase, User
from tierpay.services.payment_session import PaymentSessionManager
from tierpay.utils.exceptions import (
    CustodianError,
    InvalidUpgradeError,
    UnknownTierError,
    UnsupportedAssetError,
    UserNotFoundError,
)


@pytest.fixture
def manager(session, catalog, mock_custodian, mock_rates):
    return PaymentSessionManager(
        session,
        catalog,
        mock_custodian,
        mock_rates,
        supported_assets=["BTC_TEST", "ETH_TEST5"],
        ttl_minutes=30,
    )


async def purchase_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(Purchase))).scalar_one()


class TestCreateSession:
    """New purchases."""

    @pytest.mark.asyncio
    async def test_creates_purchase_and_session(
        self, session, manager, make_user, mock_custodian
    ):
        sponsor = await make_user("sponsor@example.com", tier="gold")
        buyer = await make_user("buyer@example.com", referred_by=sponsor)

        payment_session = await manager.create_session(buyer.id, "Gold", "BTC_TEST")

        assert payment_session.status == PaymentSessionStatus.PENDING.value
        assert payment_session.tier == "gold"
        assert payment_session.price_usd == Decimal("500.00")
        assert payment_session.quoted_crypto_amount == Decimal("0.01000000")
        assert payment_session.exchange_rate_usd == Decimal("50000")
        assert payment_session.deposit_address == "tb1q-deposit-1"
        assert payment_session.vault_account_id == "vault-new"
        assert payment_session.expires_at > payment_session.created_at

        purchase = await session.get(Purchase, payment_session.purchase_id)
        assert purchase.amount_usd == Decimal("500.00")
        assert purchase.commission_base_usd == Decimal("500.00")
        assert not purchase.is_upgrade
        assert purchase.referred_by_user_id == sponsor.id

        mock_custodian.create_vault.assert_awaited_once()
        mock_custodian.activate_asset.assert_awaited_once_with("vault-new", "BTC_TEST")

    @pytest.mark.asyncio
    async def test_reuses_open_session(self, session, manager, make_user, mock_custodian):
        buyer = await make_user("buyer@example.com")

        first = await manager.create_session(buyer.id, "gold", "BTC_TEST")
        second = await manager.create_session(buyer.id, "gold", "BTC_TEST")

        assert second.id == first.id
        assert mock_custodian.create_deposit_address.await_count == 1
        assert await purchase_count(session) == 1

    @pytest.mark.asyncio
    async def test_other_asset_gets_new_session(self, session, manager, make_user):
        buyer = await make_user("buyer@example.com")

        first = await manager.create_session(buyer.id, "gold", "BTC_TEST")
        second = await manager.create_session(buyer.id, "gold", "ETH_TEST5")

        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_unknown_user(self, manager):
        with pytest.raises(UserNotFoundError):
            await manager.create_session(999, "gold", "BTC_TEST")

    @pytest.mark.asyncio
    async def test_unknown_tier(self, manager, make_user):
        buyer = await make_user("buyer@example.com")

        with pytest.raises(UnknownTierError):
            await manager.create_session(buyer.id, "mythril", "BTC_TEST")

    @pytest.mark.asyncio
    async def test_unsupported_asset(self, manager, make_user, mock_custodian):
        buyer = await make_user("buyer@example.com")

        with pytest.raises(UnsupportedAssetError):
            await manager.create_session(buyer.id, "gold", "DOGE")

        mock_custodian.create_vault.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custodian_failure_leaves_no_purchase(
        self, session, manager, make_user, mock_custodian
    ):
        buyer = await make_user("buyer@example.com")
        buyer_id = buyer.id
        mock_custodian.create_deposit_address.side_effect = CustodianError(
            "address creation failed", http_status=500
        )

        with pytest.raises(CustodianError):
            await manager.create_session(buyer_id, "gold", "BTC_TEST")

        assert await purchase_count(session) == 0
        stored = await session.get(User, buyer_id, populate_existing=True)
        assert stored.custodian_vault_id == "vault-new"


class TestUpgrade:
    """Moving to a higher package pays the difference."""

    @pytest.mark.asyncio
    async def test_upgrade_pays_difference(self, session, manager, make_user):
        buyer = await make_user("buyer@example.com", tier="gold")

        payment_session = await manager.create_session(buyer.id, "platinum", "BTC_TEST")

        assert payment_session.price_usd == Decimal("500.00")
        purchase = await session.get(Purchase, payment_session.purchase_id)
        assert purchase.is_upgrade
        assert purchase.from_tier == "gold"
        assert purchase.commission_base_usd == Decimal("500.00")

    @pytest.mark.parametrize("tier", ["gold", "silver", "bronze"])
    @pytest.mark.asyncio
    async def test_same_or_lower_rejected(self, session, manager, make_user, tier):
        buyer = await make_user("buyer@example.com", tier="gold")

        with pytest.raises(InvalidUpgradeError):
            await manager.create_session(buyer.id, tier, "BTC_TEST")

        assert await purchase_count(session) == 0

    @pytest.mark.asyncio
    async def test_inactive_package_buys_full_price(self, manager, make_user):
        buyer = await make_user("buyer@example.com", tier="gold", is_active=False)

        payment_session = await manager.create_session(buyer.id, "silver", "BTC_TEST")

        assert payment_session.price_usd == Decimal("250.00")


class TestEnsureVault:
    """Vault lookup and creation."""

    @pytest.mark.asyncio
    async def test_existing_vault_kept(self, manager, make_user, mock_custodian):
        user = await make_user("user@example.com", vault_id="vault-7")

        assert await manager.ensure_vault(user) == "vault-7"
        mock_custodian.create_vault.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_vault_replaced(self, session, manager, make_user, mock_custodian):
        user = await make_user("user@example.com", vault_id="vault-gone")
        mock_custodian.vault_exists.return_value = False

        assert await manager.ensure_vault(user) == "vault-new"
        stored = await session.get(User, user.id, populate_existing=True)
        assert stored.custodian_vault_id == "vault-new"


class TestSessionStatus:
    """Buyer-facing status lookup."""

    @pytest.mark.asyncio
    async def test_owner_sees_status(self, manager, make_user, make_payment_session):
        buyer = await make_user("buyer@example.com")
        payment_session = await make_payment_session(buyer)

        view = await manager.get_session_status(payment_session.id, buyer.id)

        assert view.status == "pending"
        data = view.to_dict()
        assert data["sessionId"] == payment_session.id
        assert data["priceUsd"] == "500.00"
        assert data["amountReceived"] is None

    @pytest.mark.asyncio
    async def test_other_user_sees_nothing(self, manager, make_user, make_payment_session):
        buyer = await make_user("buyer@example.com")
        other = await make_user("other@example.com")
        payment_session = await make_payment_session(buyer)

        assert await manager.get_session_status(payment_session.id, other.id) is None
        assert await manager.get_session_status(12345, buyer.id) is None
