"""
Health check server for the job scheduler.

Provides HTTP endpoints for container health checks.
"""

import asyncio

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

SCHEDULER = web.AppKey("scheduler", AsyncIOScheduler)


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with scheduler status and next run times
    """
    scheduler = request.app[SCHEDULER]
    jobs = [
        {
            "id": job.id,
            "nextRunTime": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
    return web.json_response(
        {
            "status": "healthy" if scheduler.running else "stopped",
            "schedulerRunning": scheduler.running,
            "jobs": jobs,
        },
        status=200 if scheduler.running else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """Liveness check endpoint."""
    return web.json_response({"status": "alive", "alive": True})


async def start_health_server(
    scheduler: AsyncIOScheduler,
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Start the health check server.

    Args:
        scheduler: Scheduler to report on
        host: Host to bind to
        port: Port to bind to

    Returns:
        AppRunner for cleanup
    """
    app = web.Application()
    app[SCHEDULER] = scheduler
    app.router.add_get("/health", health_handler)
    app.router.add_get("/health/live", liveness_handler)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Scheduler health server started on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """
    Stop the health check server.

    Args:
        runner: AppRunner to cleanup
        timeout: Maximum time to wait for cleanup in seconds
    """
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("Scheduler health server stopped")
    except TimeoutError:
        logger.warning(f"Health server cleanup timed out after {timeout}s")
