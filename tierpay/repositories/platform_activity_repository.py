"""
Platform activity repository.

Append-only writes to the audit trail.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.platform_activity import PlatformActivity
from tierpay.repositories.base import BaseRepository


class PlatformActivityRepository(BaseRepository[PlatformActivity]):
    """Platform activity repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize platform activity repository."""
        super().__init__(PlatformActivity, session)

    def record(
        self,
        event_type: str,
        user_id: int | None = None,
        status: str | None = None,
        amount_usd: Decimal | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PlatformActivity:
        """
        Add an activity row to the current transaction.

        Written on the caller's flush/commit; nothing is flushed here.

        Args:
            event_type: One of `ActivityType`
            user_id: Affected user
            status: Session or sweep status at the time of the event
            amount_usd: Amount involved
            metadata: JSON-serializable context

        Returns:
            Pending activity row
        """
        activity = PlatformActivity(
            event_type=event_type,
            user_id=user_id,
            status=status,
            amount_usd=amount_usd,
            extra_data=metadata,
        )
        self.session.add(activity)
        return activity
