"""
Payment session expiry.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tierpay.models.types import utcnow
from tierpay.repositories.payment_session_repository import (
    PaymentSessionRepository,
)
from tierpay.utils.db_decorators import with_auto_commit


@with_auto_commit
async def expire_stale_sessions(session: AsyncSession) -> int:
    """
    Expire pending sessions past their expiry.

    Returns:
        Number of sessions expired
    """
    count = await PaymentSessionRepository(session).expire_stale(utcnow())
    if count:
        logger.info(f"Expired {count} payment sessions")
    return count


async def sweep_expired_best_effort(
    session_maker: async_sessionmaker[AsyncSession],
) -> int:
    """
    Run the expiry sweep in its own transaction, never raising.

    Used after each notification; a failure here must not fail the
    notification response.
    """
    try:
        async with session_maker() as session:
            return await expire_stale_sessions(session)
    except Exception as e:
        logger.error(f"Opportunistic session expiry failed: {e}")
        return 0
