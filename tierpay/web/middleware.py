"""
HTTP middleware.

Maps service exceptions to JSON responses in one place.
"""

from aiohttp import web
from loguru import logger

from tierpay.utils.exceptions import TierpayError


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """
    Convert exceptions into JSON error responses.

    Client errors carry their message; server-side errors expose only a
    static message.
    """
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except TierpayError as e:
        if e.status_code < 500:
            logger.warning(
                f"{request.method} {request.path} -> {e.status_code}: {e.message}"
            )
            message = e.message
        else:
            logger.error(
                f"{request.method} {request.path} -> {e.status_code}: {e.message}"
            )
            message = e.public_message
        return web.json_response({"error": message}, status=e.status_code)
    except Exception as e:
        logger.exception(f"{request.method} {request.path} failed: {e}")
        return web.json_response({"error": "Internal error"}, status=500)
