"""
Upline snapshot loading.

One bounded recursive query per walk; the walk itself happens in memory.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.constants import CHAIN_PRELOAD_LIMIT
from tierpay.repositories.user_repository import UserRepository
from tierpay.services.commission.engine import Ancestor


async def load_ancestors(
    session: AsyncSession, user_id: int, max_hops: int = CHAIN_PRELOAD_LIMIT
) -> list[Ancestor]:
    """
    Load a user's upline with each ancestor's package.

    Args:
        session: Database session
        user_id: Buyer
        max_hops: Maximum ancestors to load

    Returns:
        Ancestors from the direct referrer upward
    """
    rows = await UserRepository(session).get_upline(user_id, max_hops=max_hops)
    return [
        Ancestor(
            user_id=row.user_id,
            tier=row.tier,
            is_active=bool(row.is_active),
        )
        for row in rows
    ]
