"""
aiohttp application factory.

    app = create_app(container, event_bus)

Layout:
    /api/...   JSON surface (see ``taskquest.web.routes``)
    /ws        realtime channel (see ``taskquest.web.realtime``)
    /health    liveness and dependency report

Every request runs inside a ``LogContext`` carrying a generated request id and
the matched route, so service logs can be correlated per request.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from aiohttp import web

from taskquest.core.logging.logger import LogContext, get_logger
from taskquest.web.context import CONTAINER_KEY, EVENT_BUS_KEY, HUB_KEY
from taskquest.web.errors import Handler, error_middleware
from taskquest.web.realtime import RealtimeHub
from taskquest.web.routes import health, routes

if TYPE_CHECKING:
    from taskquest.core.event.bus import EventBus
    from taskquest.core.services.container import ServiceContainer

logger = get_logger(__name__)

API_PREFIX = "/api"


@web.middleware
async def request_context_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    resource = request.match_info.route.resource
    route = resource.canonical if resource is not None else request.path

    start = time.perf_counter()
    async with LogContext(request_id=request_id, route=f"{request.method} {route}", component="web"):
        response = await handler(request)
        logger.debug(
            "Request handled",
            extra={
                "status": response.status,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
    response.headers["X-Request-ID"] = request_id
    return response


async def _close_realtime(app: web.Application) -> None:
    hub = app[HUB_KEY]
    hub.unregister(app[EVENT_BUS_KEY])
    await hub.close_all()


def create_app(container: ServiceContainer, event_bus: EventBus) -> web.Application:
    """Build the application. ``container`` must already be initialized."""
    hub = RealtimeHub(container.notifications)
    hub.register(event_bus)

    api = web.Application()
    api.add_routes(routes)

    app = web.Application(middlewares=[request_context_middleware, error_middleware])
    app[CONTAINER_KEY] = container
    app[EVENT_BUS_KEY] = event_bus
    app[HUB_KEY] = hub

    app.router.add_get("/ws", hub.handle)
    app.router.add_get("/health", health)
    app.add_subapp(API_PREFIX, api)
    app.on_shutdown.append(_close_realtime)

    logger.info("Web application created", extra={"api_routes": len(api.router.routes())})
    return app
