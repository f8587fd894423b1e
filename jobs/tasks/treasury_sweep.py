"""Move completed customer deposits to the treasury vault."""

import dramatiq
from loguru import logger

from jobs.broker import broker  # noqa: F401  (must be set before actors are declared)
from jobs.async_runner import create_local_session, run_async
from tierpay.config.constants import DRAMATIQ_TIME_LIMIT_STANDARD
from tierpay.config.settings import settings
from tierpay.services.custodian.client import CustodianClient
from tierpay.services.treasury.sweeper import SweepBatchResult, TreasurySweeper


@dramatiq.actor(max_retries=1, time_limit=DRAMATIQ_TIME_LIMIT_STANDARD)
def sweep_treasury(asset_id: str | None = None, only_failed: bool = False) -> None:
    """
    Submit treasury transfers for the oldest unswept sessions.

    Args:
        asset_id: Restrict to one asset
        only_failed: Retry previously failed sweeps only
    """
    if not settings.treasury_vault_id:
        logger.warning("Treasury sweep skipped: TREASURY_VAULT_ID is not configured")
        return

    result = run_async(_sweep_treasury_async(asset_id, only_failed))
    logger.info(
        f"Treasury sweep job: {result.success_count} submitted, "
        f"{result.failed_count} failed, {result.skipped_count} skipped"
    )


async def _sweep_treasury_async(
    asset_id: str | None, only_failed: bool
) -> SweepBatchResult:
    custodian = CustodianClient.from_settings(settings)
    try:
        async with create_local_session() as session:
            sweeper = TreasurySweeper(session, custodian, settings.treasury_vault_id)
            return await sweeper.sweep_batch(
                asset_id=asset_id,
                limit=settings.treasury_sweep_batch_limit,
                only_failed=only_failed,
            )
    finally:
        await custodian.close()
