"""
Health check endpoints.
"""

from aiohttp import web
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tierpay.web.context import CATALOG, SESSION_MAKER


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with database and catalog status
    """
    try:
        async with request.app[SESSION_MAKER]() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return web.json_response(
            {
                "status": "unhealthy",
                "database": "unavailable",
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "healthy",
            "database": "ok",
            "packages": len(request.app[CATALOG]),
        }
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """
    Liveness check endpoint.

    Returns:
        JSON response indicating if the process is alive
    """
    return web.json_response(
        {
            "status": "alive",
            "alive": True,
        }
    )
