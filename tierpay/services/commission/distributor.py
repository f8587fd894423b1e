"""
Commission distribution.

Posts the commissions for a settled revenue event. Runs inside the
settlement transaction; the caller commits or rolls back.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tierpay.models.enums import CommissionStatus
from tierpay.models.platform_activity import ActivityType
from tierpay.models.revenue_event import RevenueEvent
from tierpay.repositories.commission_repository import CommissionRepository
from tierpay.repositories.platform_activity_repository import (
    PlatformActivityRepository,
)
from tierpay.services.catalog import PackageCatalog
from tierpay.services.commission.chain import load_ancestors
from tierpay.services.commission.engine import (
    DistributionResult,
    calculate_commissions,
)


class CommissionDistributor:
    """Distributes revenue up the referral chain."""

    def __init__(self, session: AsyncSession, catalog: PackageCatalog) -> None:
        """Initialize distributor."""
        self.session = session
        self.catalog = catalog
        self.commission_repo = CommissionRepository(session)
        self.activity_repo = PlatformActivityRepository(session)

    async def distribute(self, revenue_event: RevenueEvent) -> DistributionResult:
        """
        Compute and persist commissions for a revenue event.

        A referral cycle stops the walk; payouts computed before it are kept
        and the revenue event is flagged for review.

        Args:
            revenue_event: Freshly inserted revenue event

        Returns:
            Payouts and skips
        """
        ancestors = await load_ancestors(self.session, revenue_event.user_id)
        result = calculate_commissions(
            buyer_id=revenue_event.user_id,
            commission_base=revenue_event.amount_usd,
            ancestors=ancestors,
            catalog=self.catalog,
        )

        await self.commission_repo.bulk_create(
            [
                {
                    "beneficiary_user_id": payout.beneficiary_user_id,
                    "source_revenue_event_id": revenue_event.id,
                    "layer": payout.layer,
                    "referred_user_id": payout.referred_user_id,
                    "amount_usd": payout.amount_usd,
                    "rate_percent": payout.rate_percent,
                    "status": CommissionStatus.PENDING.value,
                    "notes": payout.notes,
                }
                for payout in result.payouts
            ]
        )

        if result.payouts:
            self.activity_repo.record(
                ActivityType.COMMISSION_DISTRIBUTED,
                user_id=revenue_event.user_id,
                amount_usd=result.total_commission,
                metadata={
                    "revenue_event_id": revenue_event.id,
                    "commission_base": str(result.commission_base),
                    "payouts": len(result.payouts),
                    "skipped": len(result.skipped),
                },
            )

        if result.cycle_detected:
            revenue_event.requires_review = True
            cycle = result.skipped[-1]
            self.activity_repo.record(
                ActivityType.COMMISSION_CYCLE_DETECTED,
                user_id=revenue_event.user_id,
                metadata={
                    "revenue_event_id": revenue_event.id,
                    "repeated_user_id": cycle.user_id,
                    "layer": cycle.layer,
                },
            )
            logger.bind(
                revenue_event_id=revenue_event.id,
                buyer_id=revenue_event.user_id,
                repeated_user_id=cycle.user_id,
                layer=cycle.layer,
            ).warning("Referral cycle detected during commission walk")

        await self.session.flush()

        logger.bind(
            revenue_event_id=revenue_event.id,
            buyer_id=revenue_event.user_id,
            commission_base=str(result.commission_base),
            payouts=len(result.payouts),
            skipped=len(result.skipped),
            total=str(result.total_commission),
        ).info("Commissions distributed")
        return result
