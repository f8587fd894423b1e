"""
Referral repository.

Data access layer for Referral model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.referral import Referral
from tierpay.repositories.base import BaseRepository


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def get_by_referred_user(self, referred_user_id: int) -> Referral | None:
        """Get the referral edge pointing at a user."""
        return await self.get_by(referred_user_id=referred_user_id)
