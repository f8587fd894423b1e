"""
Affiliate status repository.

Upsert of the package a user holds.
"""

from datetime import datetime

from sqlalchemy import case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.affiliate_status import AffiliateStatus
from tierpay.models.types import utcnow
from tierpay.repositories.base import BaseRepository


class AffiliateStatusRepository(BaseRepository[AffiliateStatus]):
    """Affiliate status repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate status repository."""
        super().__init__(AffiliateStatus, session)

    async def get_for_user(self, user_id: int) -> AffiliateStatus | None:
        """Get a user's affiliate status."""
        return await self.session.get(AffiliateStatus, user_id)

    async def upsert_tier(
        self, user_id: int, tier: str, depth_limit: int, now: datetime | None = None
    ) -> None:
        """
        Activate a user's package without ever lowering it.

        A single INSERT ... ON CONFLICT keeps the higher of the stored and
        the new package, so concurrent completions for one user cannot
        conflict.

        Args:
            user_id: Package holder
            tier: Package key
            depth_limit: Package level
            now: Update timestamp
        """
        now = now or utcnow()
        dialect = self.session.get_bind().dialect.name
        insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert_fn(AffiliateStatus).values(
            user_id=user_id,
            tier=tier,
            tier_depth_limit=depth_limit,
            is_active=True,
            updated_at=now,
        )
        raises = stmt.excluded.tier_depth_limit > AffiliateStatus.tier_depth_limit
        stmt = stmt.on_conflict_do_update(
            index_elements=[AffiliateStatus.user_id],
            set_={
                "tier": case((raises, stmt.excluded.tier), else_=AffiliateStatus.tier),
                "tier_depth_limit": case(
                    (raises, stmt.excluded.tier_depth_limit),
                    else_=AffiliateStatus.tier_depth_limit,
                ),
                "is_active": True,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
