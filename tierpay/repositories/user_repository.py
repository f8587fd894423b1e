"""
User repository.

Data access layer for User model, including the upline walk.
"""

from typing import NamedTuple

from sqlalchemy import literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.config.constants import CHAIN_PRELOAD_LIMIT
from tierpay.models.affiliate_status import AffiliateStatus
from tierpay.models.user import User
from tierpay.repositories.base import BaseRepository


class UplineRow(NamedTuple):
    """One ancestor as loaded by the upline query."""

    depth: int  # 1 = direct referrer
    user_id: int
    tier: str | None
    is_active: bool | None


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_referral_code(self, code: str) -> User | None:
        """
        Get user by referral code.

        Args:
            code: Referral code (case-sensitive)

        Returns:
            User or None if not found
        """
        return await self.get_by(referral_code=code)

    async def get_upline(
        self, user_id: int, max_hops: int = CHAIN_PRELOAD_LIMIT
    ) -> list[UplineRow]:
        """
        Load the referrer chain above a user in one query.

        Uses a recursive CTE over `users.referred_by_user_id`, bounded at
        `max_hops` rows, and joins each ancestor's affiliate status. A cycle
        shows up as a repeated user id; the caller detects it.

        Args:
            user_id: User whose upline is loaded
            max_hops: Maximum number of ancestors to return

        Returns:
            Ancestors ordered from the direct referrer upward
        """
        base = (
            select(
                User.referred_by_user_id.label("ancestor_id"),
                literal(1).label("depth"),
            )
            .where(User.id == user_id, User.referred_by_user_id.is_not(None))
            .cte("upline", recursive=True)
        )

        previous = base.alias()
        parent = (
            select(User.referred_by_user_id, previous.c.depth + 1)
            .join(previous, User.id == previous.c.ancestor_id)
            .where(
                User.referred_by_user_id.is_not(None),
                previous.c.depth < max_hops,
            )
        )
        upline = base.union_all(parent)

        stmt = (
            select(
                upline.c.depth,
                upline.c.ancestor_id,
                AffiliateStatus.tier,
                AffiliateStatus.is_active,
            )
            .outerjoin(AffiliateStatus, AffiliateStatus.user_id == upline.c.ancestor_id)
            .order_by(upline.c.depth)
        )

        result = await self.session.execute(stmt)
        return [
            UplineRow(
                depth=row.depth,
                user_id=row.ancestor_id,
                tier=row.tier,
                is_active=row.is_active,
            )
            for row in result.all()
        ]

    async def upline_contains(
        self, user_id: int, candidate_id: int, max_hops: int = CHAIN_PRELOAD_LIMIT
    ) -> bool:
        """
        Check whether `candidate_id` appears in the upline of `user_id`.

        Args:
            user_id: User whose upline is searched
            candidate_id: User to look for
            max_hops: Search bound

        Returns:
            True if candidate is an ancestor (within the preload bound)
        """
        upline = await self.get_upline(user_id, max_hops=max_hops)
        return any(row.user_id == candidate_id for row in upline)
