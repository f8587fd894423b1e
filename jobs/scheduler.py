"""
Periodic job scheduler.

Enqueues dramatiq actors on fixed intervals. Run with
`python -m jobs.scheduler` alongside `dramatiq jobs.worker`.
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from jobs.health import start_health_server, stop_health_server
from jobs.tasks.session_expiry import expire_payment_sessions
from jobs.tasks.treasury_sweep import sweep_treasury
from tierpay.config.logging import setup_logging
from tierpay.config.settings import settings


def build_scheduler() -> AsyncIOScheduler:
    """Register the periodic jobs enabled in settings."""
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        expire_payment_sessions.send,
        "interval",
        seconds=settings.session_expiry_interval_seconds,
        id="expire_payment_sessions",
        max_instances=1,
        coalesce=True,
    )

    if settings.treasury_sweep_interval_minutes and settings.treasury_vault_id:
        scheduler.add_job(
            sweep_treasury.send,
            "interval",
            minutes=settings.treasury_sweep_interval_minutes,
            id="sweep_treasury",
            max_instances=1,
            coalesce=True,
        )
    else:
        logger.info("Periodic treasury sweep disabled")

    return scheduler


async def run() -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    scheduler = build_scheduler()
    scheduler.start()
    runner = await start_health_server(scheduler, port=settings.scheduler_health_port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)
        logger.info("Scheduler stopped")


def main() -> None:
    setup_logging("scheduler")
    asyncio.run(run())


if __name__ == "__main__":
    main()
