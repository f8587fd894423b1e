"""Expire payment sessions whose quote window has passed."""

import dramatiq
from loguru import logger

from jobs.broker import broker  # noqa: F401  (must be set before actors are declared)
from jobs.async_runner import create_local_session, run_async
from tierpay.config.constants import DRAMATIQ_TIME_LIMIT_SHORT
from tierpay.services.settlement.expiry import expire_stale_sessions


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT_SHORT)
def expire_payment_sessions() -> None:
    """
    Mark stale pending sessions and their purchases as expired.

    Runs on a schedule; webhooks also trigger the same sweep opportunistically.
    A failed run is not retried since the next scheduled run covers it.
    """
    expired = run_async(_expire_payment_sessions_async())
    if expired:
        logger.info(f"Session expiry job: {expired} sessions expired")


async def _expire_payment_sessions_async() -> int:
    async with create_local_session() as session:
        return await expire_stale_sessions(session)
