"""
Dramatiq broker.

Settlement housekeeping (session expiry, treasury sweeps) runs as dramatiq
actors on a Redis broker. Import this module before declaring actors.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from tierpay.config.settings import settings


def create_broker() -> RedisBroker:
    """Redis broker with graceful shutdown and bounded retries."""
    redis_broker = RedisBroker(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
    )
    redis_broker.add_middleware(ShutdownNotifications())
    redis_broker.add_middleware(CurrentMessage())
    redis_broker.add_middleware(
        Retries(max_retries=3, min_backoff=1_000, max_backoff=60_000)
    )
    return redis_broker


broker = create_broker()
dramatiq.set_broker(broker)

logger.info(
    f"Dramatiq broker on redis://{settings.redis_host}:{settings.redis_port}"
    f"/{settings.redis_db}"
)
