"""
Read-only HTTP health surface.

GET /health reports liveness and which tenant/queue this instance serves.
Nothing here touches the broker or the dispatch loop.
"""
import logging
import time

from aiohttp import web

from print_relay.config.manager import Settings

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey('settings', Settings)
STARTED_AT_KEY = web.AppKey('started_at', float)


@web.middleware
async def request_logger(request: web.Request, handler):
    logger.info(f"{request.method} {request.path}")
    return await handler(request)


@web.middleware
async def error_handler(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        return web.json_response({'status': 'error', 'message': e.reason}, status=e.status)
    except Exception as e:
        logger.error(f"API Request Error on {request.method} {request.path}: {e}", exc_info=True)
        return web.json_response({'status': 'error', 'message': 'Internal Server Error'}, status=500)


async def health(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    return web.json_response({
        'status': 'ok',
        'service': 'print-relay',
        'tenantId': settings.tenant_id,
        'queue': settings.queue_name,
        'uptime': round(time.monotonic() - request.app[STARTED_AT_KEY], 3),
    })


def create_app(settings: Settings) -> web.Application:
    app = web.Application(middlewares=[request_logger, error_handler])
    app[SETTINGS_KEY] = settings
    app[STARTED_AT_KEY] = time.monotonic()
    app.router.add_get('/health', health)
    return app
