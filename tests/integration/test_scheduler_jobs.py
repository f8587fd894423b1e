"""
Scheduler wiring and its health endpoints.
"""

import aiohttp
import pytest
from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from jobs.health import (
    SCHEDULER,
    health_handler,
    liveness_handler,
    start_health_server,
    stop_health_server,
)
from jobs.scheduler import build_scheduler
from tierpay.config.settings import settings


def _noop() -> None:
    pass


@pytest.fixture
async def scheduler():
    scheduler = AsyncIOScheduler(timezone="UTC")
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture
async def health_client(aiohttp_client, scheduler):
    app = web.Application()
    app[SCHEDULER] = scheduler
    app.router.add_get("/health", health_handler)
    app.router.add_get("/health/live", liveness_handler)
    return await aiohttp_client(app)


class TestBuildScheduler:
    """Periodic job registration."""

    def test_expiry_job_only_by_default(self):
        scheduler = build_scheduler()

        assert [job.id for job in scheduler.get_jobs()] == ["expire_payment_sessions"]

    def test_treasury_sweep_when_enabled(self, monkeypatch):
        monkeypatch.setattr(settings, "treasury_sweep_interval_minutes", 15)

        scheduler = build_scheduler()

        assert {job.id for job in scheduler.get_jobs()} == {
            "expire_payment_sessions",
            "sweep_treasury",
        }

    def test_treasury_sweep_needs_vault(self, monkeypatch):
        monkeypatch.setattr(settings, "treasury_sweep_interval_minutes", 15)
        monkeypatch.setattr(settings, "treasury_vault_id", None)

        scheduler = build_scheduler()

        assert "sweep_treasury" not in {job.id for job in scheduler.get_jobs()}


class TestHealth:
    """Container health endpoints."""

    @pytest.mark.asyncio
    async def test_stopped_scheduler_is_unhealthy(self, health_client):
        response = await health_client.get("/health")

        assert response.status == 503
        body = await response.json()
        assert body["status"] == "stopped"
        assert body["schedulerRunning"] is False

    @pytest.mark.asyncio
    async def test_running_scheduler_reports_jobs(self, health_client, scheduler):
        scheduler.start()
        scheduler.add_job(_noop, "interval", minutes=5, id="noop")

        response = await health_client.get("/health")

        assert response.status == 200
        body = await response.json()
        assert body["status"] == "healthy"
        assert [job["id"] for job in body["jobs"]] == ["noop"]
        assert body["jobs"][0]["nextRunTime"] is not None

    @pytest.mark.asyncio
    async def test_liveness(self, health_client):
        response = await health_client.get("/health/live")

        assert response.status == 200
        assert (await response.json())["alive"] is True

    @pytest.mark.asyncio
    async def test_standalone_server(self, scheduler, unused_tcp_port):
        runner = await start_health_server(
            scheduler, host="127.0.0.1", port=unused_tcp_port
        )
        try:
            async with aiohttp.ClientSession() as http:
                async with http.get(
                    f"http://127.0.0.1:{unused_tcp_port}/health/live"
                ) as response:
                    assert response.status == 200
        finally:
            await stop_health_server(runner)
