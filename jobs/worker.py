"""
Dramatiq worker module.

Run with `dramatiq jobs.worker`.
"""

from jobs.broker import broker  # noqa: F401
from jobs.tasks.session_expiry import expire_payment_sessions
from jobs.tasks.treasury_sweep import sweep_treasury
from tierpay.config.logging import setup_logging

setup_logging("worker")

__all__ = ["expire_payment_sessions", "sweep_treasury"]
