"""Application keys and request helpers shared by the route modules."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict

from aiohttp import web

from taskquest.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from taskquest.core.event.bus import EventBus
    from taskquest.core.services.container import ServiceContainer
    from taskquest.web.realtime import RealtimeHub

CONTAINER_KEY: web.AppKey["ServiceContainer"] = web.AppKey("container")
EVENT_BUS_KEY: web.AppKey["EventBus"] = web.AppKey("event_bus")
HUB_KEY: web.AppKey["RealtimeHub"] = web.AppKey("realtime_hub")


def container_of(request: web.Request) -> ServiceContainer:
    return request.config_dict[CONTAINER_KEY]


async def read_json(request: web.Request) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    An empty body reads as ``{}``. Anything that is not a JSON object is a
    ValidationError, so it surfaces as a 400 like every other bad input.
    """
    if not request.body_exists:
        return {}
    raw = await request.text()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("body", f"invalid JSON ({exc.msg})") from exc
    if not isinstance(body, dict):
        raise ValidationError("body", "must be a JSON object")
    return body


def task_id_of(request: web.Request) -> int:
    return int(request.match_info["task_id"])


def ok(**payload: Any) -> web.Response:
    return web.json_response({"success": True, **payload})
