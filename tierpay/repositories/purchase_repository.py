"""
Purchase repository.

Data access layer for Purchase model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.purchase import Purchase
from tierpay.repositories.base import BaseRepository


class PurchaseRepository(BaseRepository[Purchase]):
    """Purchase repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize purchase repository."""
        super().__init__(Purchase, session)
