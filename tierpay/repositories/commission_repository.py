"""
Commission repository.

Data access layer for Commission model.
"""

from typing import Any

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.commission import Commission
from tierpay.repositories.base import BaseRepository


class CommissionRepository(BaseRepository[Commission]):
    """Commission repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission repository."""
        super().__init__(Commission, session)

    async def bulk_create(self, items: list[dict[str, Any]]) -> list[Commission]:
        """
        Create multiple commissions using RETURNING to avoid N+1 refresh.

        Args:
            items: List of commission data dicts

        Returns:
            List of created commissions
        """
        if not items:
            return []

        result = await self.session.scalars(
            insert(Commission).returning(Commission), items
        )
        return list(result.all())
