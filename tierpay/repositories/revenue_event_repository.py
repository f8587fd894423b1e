"""
Revenue event repository.

Data access layer for RevenueEvent model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.revenue_event import RevenueEvent
from tierpay.repositories.base import BaseRepository


class RevenueEventRepository(BaseRepository[RevenueEvent]):
    """Revenue event repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize revenue event repository."""
        super().__init__(RevenueEvent, session)

    async def get_by_custodian_tx_id(self, tx_id: str) -> RevenueEvent | None:
        """Get the revenue event recorded for a custodian transaction."""
        return await self.get_by(custodian_tx_id=tx_id)
