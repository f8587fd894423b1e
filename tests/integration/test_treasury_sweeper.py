"""
Integration tests for treasury sweeps.
"""

from decimal import Decimal

import pytest

from tierpay.models import PaymentSession, PaymentSessionStatus
from tierpay.services.custodian import TransferResult
from tierpay.services.treasury import TreasurySweeper
from tierpay.utils.exceptions import ConfigurationError, CustodianError

COMPLETED = PaymentSessionStatus.COMPLETED


@pytest.fixture
def sweeper(session, mock_custodian):
    return TreasurySweeper(session, mock_custodian, "treasury-vault")


@pytest.fixture
async def completed_session(make_user, make_payment_session):
    buyer = await make_user("buyer@example.com")
    payment_session = await make_payment_session(
        buyer,
        status=COMPLETED,
        amount_received_usd=Decimal("500.00"),
        amount_received_crypto=Decimal("0.0101"),
        custodian_tx_id="tx-1",
    )
    return payment_session.id


async def reload(session, session_id) -> PaymentSession:
    return await session.get(PaymentSession, session_id, populate_existing=True)


@pytest.mark.asyncio
async def test_sweep_submits_transfer(session, sweeper, completed_session, mock_custodian):
    outcome = await sweeper.sweep(completed_session)

    assert outcome.success
    assert not outcome.skipped
    assert outcome.tx_id == "sweep-tx-1"
    assert outcome.status == "submitted"

    kwargs = mock_custodian.create_transfer.await_args.kwargs
    assert kwargs["source_vault_id"] == "vault-1"
    assert kwargs["destination_vault_id"] == "treasury-vault"
    assert kwargs["amount"] == Decimal("0.0101")
    assert kwargs["external_tx_id"] == f"sweep-{completed_session}"

    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_tx_id == "sweep-tx-1"
    assert stored.treasury_sweep_status == "submitted"


@pytest.mark.asyncio
async def test_second_sweep_skipped(sweeper, completed_session, mock_custodian):
    await sweeper.sweep(completed_session)

    outcome = await sweeper.sweep(completed_session)

    assert outcome.skipped
    assert outcome.reason == "already_swept"
    assert outcome.tx_id == "sweep-tx-1"
    assert mock_custodian.create_transfer.await_count == 1


@pytest.mark.asyncio
async def test_pending_session_not_swept(sweeper, make_user, make_payment_session):
    buyer = await make_user("buyer@example.com")
    payment_session = await make_payment_session(buyer)

    outcome = await sweeper.sweep(payment_session.id)

    assert outcome.skipped
    assert outcome.reason == "not_completed"


@pytest.mark.asyncio
async def test_missing_session(sweeper):
    outcome = await sweeper.sweep(999)

    assert outcome.skipped
    assert outcome.reason == "not_found"


@pytest.mark.asyncio
async def test_custodian_error_recorded(session, sweeper, completed_session, mock_custodian):
    mock_custodian.create_transfer.side_effect = CustodianError("insufficient funds", 400)

    outcome = await sweeper.sweep(completed_session)

    assert not outcome.success
    assert outcome.status == "failed"
    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_status == "failed"
    assert "insufficient funds" in stored.treasury_sweep_error

    retry = await sweeper.sweep_candidates(only_failed=True)
    assert [c.session_id for c in retry] == [completed_session]


@pytest.mark.asyncio
async def test_failed_sweep_retried(session, sweeper, completed_session, mock_custodian):
    mock_custodian.create_transfer.side_effect = CustodianError("timeout")
    await sweeper.sweep(completed_session)
    mock_custodian.create_transfer.side_effect = None

    outcome = await sweeper.sweep(completed_session)

    assert outcome.success
    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_status == "submitted"
    assert stored.treasury_sweep_error is None
    assert stored.treasury_sweep_attempt == 0
    keys = [c.kwargs["external_tx_id"] for c in mock_custodian.create_transfer.await_args_list]
    assert keys == [f"sweep-{completed_session}", f"sweep-{completed_session}"]


@pytest.mark.asyncio
async def test_rejected_sweep_retried_with_new_key(
    session, sweeper, completed_session, mock_custodian
):
    mock_custodian.create_transfer.side_effect = CustodianError("insufficient funds", 400)
    await sweeper.sweep(completed_session)
    mock_custodian.create_transfer.side_effect = None

    outcome = await sweeper.sweep(completed_session)

    assert outcome.success
    kwargs = mock_custodian.create_transfer.await_args.kwargs
    assert kwargs["external_tx_id"] == f"sweep-{completed_session}-1"


@pytest.mark.asyncio
async def test_transfer_update_completes_sweep(session, sweeper, completed_session):
    await sweeper.sweep(completed_session)

    assert await sweeper.apply_transfer_update("sweep-tx-1", "completed")

    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_status == "completed"
    assert stored.treasury_swept_at is not None
    assert await sweeper.sweep_candidates() == []


@pytest.mark.asyncio
async def test_transfer_update_failure(session, sweeper, completed_session):
    await sweeper.sweep(completed_session)

    await sweeper.apply_transfer_update("sweep-tx-1", "REJECTED")

    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_status == "failed"
    assert stored.treasury_sweep_error == "Custodian status REJECTED"
    assert stored.treasury_sweep_attempt == 1


@pytest.mark.asyncio
async def test_sweep_after_custodian_failure_uses_new_key(
    session, sweeper, completed_session, mock_custodian
):
    await sweeper.sweep(completed_session)
    await sweeper.apply_transfer_update("sweep-tx-1", "FAILED")
    await sweeper.apply_transfer_update("sweep-tx-1", "FAILED")
    mock_custodian.create_transfer.return_value = TransferResult(
        tx_id="sweep-tx-2", status="SUBMITTED"
    )

    outcome = await sweeper.sweep(completed_session)

    assert outcome.success
    assert outcome.tx_id == "sweep-tx-2"
    keys = [c.kwargs["external_tx_id"] for c in mock_custodian.create_transfer.await_args_list]
    assert keys == [f"sweep-{completed_session}", f"sweep-{completed_session}-1"]
    stored = await reload(session, completed_session)
    assert stored.treasury_sweep_status == "submitted"
    assert stored.treasury_sweep_attempt == 1


@pytest.mark.asyncio
async def test_transfer_update_unknown(sweeper):
    assert not await sweeper.apply_transfer_update("sweep-tx-404", "COMPLETED")


@pytest.mark.asyncio
async def test_batch_sweeps_candidates(sweeper, completed_session, make_user, make_payment_session):
    other = await make_user("other@example.com")
    await make_payment_session(
        other,
        status=COMPLETED,
        asset_id="ETH_TEST5",
        deposit_address="0xdeposit",
        vault_account_id="vault-2",
    )

    batch = await sweeper.sweep_batch(asset_id="BTC_TEST")

    assert batch.success_count == 1
    assert [r.session_id for r in batch.results] == [completed_session]
    data = batch.to_dict()
    assert data["requestedCount"] == 1
    assert data["treasuryVaultId"] == "treasury-vault"


@pytest.mark.asyncio
async def test_batch_with_explicit_ids(sweeper, completed_session):
    batch = await sweeper.sweep_batch(session_ids=[completed_session, 999])

    assert batch.success_count == 1
    assert batch.skipped_count == 1


@pytest.mark.asyncio
async def test_batch_requires_vault(session, mock_custodian):
    sweeper = TreasurySweeper(session, mock_custodian, None)

    with pytest.raises(ConfigurationError):
        await sweeper.sweep_batch()


@pytest.mark.asyncio
async def test_summary_groups_by_asset_and_package(
    sweeper, completed_session, make_user, make_payment_session
):
    other = await make_user("other@example.com")
    await make_payment_session(
        other,
        tier="silver",
        price_usd=Decimal("250.00"),
        quoted_crypto=Decimal("0.1"),
        status=COMPLETED,
        asset_id="ETH_TEST5",
        deposit_address="0xdeposit",
        vault_account_id="vault-2",
    )

    summary = (await sweeper.summarize()).to_dict()

    assert summary["pendingSweepCount"] == 2
    btc = summary["aggregateByAsset"]["BTC_TEST"]
    assert btc["count"] == 1
    assert Decimal(btc["totalUsd"]) == Decimal("500")
    assert Decimal(btc["totalCrypto"]) == Decimal("0.0101")
    assert Decimal(summary["aggregateByAsset"]["ETH_TEST5"]["totalCrypto"]) == Decimal("0.1")
    assert Decimal(summary["aggregateByPackage"]["silver"]["totalUsd"]) == Decimal("250")
