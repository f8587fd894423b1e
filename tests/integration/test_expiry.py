"""
Integration tests for payment session expiry.
"""

from datetime import timedelta

import pytest

from tierpay.models import PaymentSession, PaymentSessionStatus, Purchase
from tierpay.services.settlement import expire_stale_sessions, sweep_expired_best_effort


async def statuses(session, payment_session_id, purchase_id) -> tuple[str, str]:
    stored = await session.get(PaymentSession, payment_session_id, populate_existing=True)
    purchase = await session.get(Purchase, purchase_id, populate_existing=True)
    return stored.status, purchase.status


@pytest.mark.asyncio
async def test_expires_stale_pending_sessions(session, make_user, make_payment_session):
    buyer = await make_user("buyer@example.com")
    stale = await make_payment_session(buyer, expires_in=timedelta(minutes=-1))
    fresh = await make_payment_session(
        buyer, deposit_address="tb1q-deposit-2", expires_in=timedelta(minutes=10)
    )

    assert await expire_stale_sessions(session) == 1

    assert await statuses(session, stale.id, stale.purchase_id) == ("expired", "expired")
    assert await statuses(session, fresh.id, fresh.purchase_id) == ("pending", "pending")


@pytest.mark.parametrize(
    "status",
    [
        PaymentSessionStatus.CONFIRMING,
        PaymentSessionStatus.PARTIAL,
        PaymentSessionStatus.COMPLETED,
    ],
)
@pytest.mark.asyncio
async def test_only_pending_sessions_expire(session, make_user, make_payment_session, status):
    buyer = await make_user("buyer@example.com")
    payment_session = await make_payment_session(
        buyer, status=status, expires_in=timedelta(minutes=-30)
    )

    assert await expire_stale_sessions(session) == 0

    stored, _ = await statuses(session, payment_session.id, payment_session.purchase_id)
    assert stored == status.value


@pytest.mark.asyncio
async def test_expiry_is_repeatable(session, make_user, make_payment_session):
    buyer = await make_user("buyer@example.com")
    await make_payment_session(buyer, expires_in=timedelta(minutes=-1))

    assert await expire_stale_sessions(session) == 1
    assert await expire_stale_sessions(session) == 0


@pytest.mark.asyncio
async def test_best_effort_sweep_uses_own_session(
    session, session_maker, make_user, make_payment_session
):
    buyer = await make_user("buyer@example.com")
    stale = await make_payment_session(buyer, expires_in=timedelta(minutes=-1))

    assert await sweep_expired_best_effort(session_maker) == 1

    stored, _ = await statuses(session, stale.id, stale.purchase_id)
    assert stored == "expired"


@pytest.mark.asyncio
async def test_best_effort_sweep_never_raises():
    def broken_maker():
        raise RuntimeError("database unavailable")

    assert await sweep_expired_best_effort(broken_maker) == 0
