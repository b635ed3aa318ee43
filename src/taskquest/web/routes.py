"""
HTTP handlers, mounted under ``/api``.

Snapshot reads return bare JSON arrays. Mutations return the
``{"success": true, ...}`` envelope; failures are rendered by
``error_middleware``.
"""

from __future__ import annotations

from aiohttp import web

from taskquest.core.config.manager import ConfigValidationError
from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import LogContext, get_logging_health
from taskquest.modules.shared.exceptions import ValidationError
from taskquest.web.context import (
    CONTAINER_KEY,
    EVENT_BUS_KEY,
    HUB_KEY,
    container_of,
    ok,
    read_json,
    task_id_of,
)

routes = web.RouteTableDef()

TASK = r"{task_id:\d+}"


# ============================================================================
# Tasks
# ============================================================================


@routes.get("/tasks")
async def list_tasks(request: web.Request) -> web.Response:
    return web.json_response([t.to_dict() for t in container_of(request).tasks.list_tasks()])


@routes.post("/tasks")
async def create_task(request: web.Request) -> web.Response:
    task = await container_of(request).tasks.create(await read_json(request))
    return ok(task=task.to_dict())


@routes.post("/tasks/clear")
async def clear_tasks(request: web.Request) -> web.Response:
    removed = await container_of(request).tasks.clear_tasks()
    return ok(removed=removed)


@routes.patch(f"/tasks/{TASK}")
async def update_task(request: web.Request) -> web.Response:
    task_id = task_id_of(request)
    body = await read_json(request)
    async with LogContext(task_id=task_id, operation="update_task"):
        task = await container_of(request).tasks.update(task_id, body)
    return ok(task=task.to_dict())


@routes.delete(f"/tasks/{TASK}")
async def delete_task(request: web.Request) -> web.Response:
    await container_of(request).tasks.delete(task_id_of(request))
    return ok()


# ============================================================================
# Review transitions
# ============================================================================


@routes.post(f"/submit/{TASK}")
async def submit_task(request: web.Request) -> web.Response:
    body = await read_json(request)
    task = await container_of(request).approval.submit(
        task_id_of(request),
        body.get("player"),
        approver=body.get("approver"),
        commentary=body.get("commentary"),
        minutes_worked=body.get("minutesWorked"),
    )
    return ok(task=task.to_dict())


@routes.post(f"/confirm/{TASK}")
async def confirm_task(request: web.Request) -> web.Response:
    body = await read_json(request)
    archived = await container_of(request).approval.approve(
        task_id_of(request),
        body.get("player"),
        body.get("rating"),
        body.get("answerCommentary"),
    )
    return ok(task=archived.to_dict())


@routes.post(f"/decline/{TASK}")
async def decline_task(request: web.Request) -> web.Response:
    body = await read_json(request)
    task = await container_of(request).approval.decline(task_id_of(request), body.get("player"))
    return ok(task=task.to_dict())


# ============================================================================
# Archive
# ============================================================================


@routes.get("/archive")
async def list_archive(request: web.Request) -> web.Response:
    return web.json_response([t.to_dict() for t in container_of(request).tasks.list_archive()])


@routes.post("/archive/clear")
async def clear_archive(request: web.Request) -> web.Response:
    removed = await container_of(request).tasks.clear_archive()
    return ok(removed=removed)


# ============================================================================
# Players
# ============================================================================


@routes.get("/player-stats")
async def list_player_stats(request: web.Request) -> web.Response:
    return web.json_response(container_of(request).players.list_stats())


@routes.post("/player-stats")
async def upsert_player_stats(request: web.Request) -> web.Response:
    players = container_of(request).players
    stats = await players.upsert_stats(await read_json(request))
    return ok(stats=players.stats_dict(stats))


@routes.get("/players")
async def list_players(request: web.Request) -> web.Response:
    return web.json_response(container_of(request).players.list_players())


@routes.get("/players/{player_id}/push-targets")
async def get_push_targets(request: web.Request) -> web.Response:
    targets = container_of(request).players.get_push_targets(request.match_info["player_id"])
    return web.json_response(targets)


@routes.put("/players/{player_id}/push-targets")
async def set_push_targets(request: web.Request) -> web.Response:
    body = await read_json(request)
    targets = await container_of(request).players.set_push_targets(
        request.match_info["player_id"], body.get("targets")
    )
    return ok(targets=targets)


# ============================================================================
# Notifications
# ============================================================================


@routes.get("/notifications")
async def list_notifications(request: web.Request) -> web.Response:
    notifications = container_of(request).notifications
    player_id = request.query.get("playerId")
    items = notifications.list_unacknowledged(player_id) if player_id else notifications.list_all()
    return web.json_response([n.to_dict() for n in items])


@routes.patch("/notifications/seen")
async def acknowledge_notifications(request: web.Request) -> web.Response:
    body = await read_json(request)
    removed = await container_of(request).notifications.acknowledge(body.get("playerId"))
    return ok(removed=removed)


# ============================================================================
# Ranks & rewards
# ============================================================================


@routes.get("/ranks")
async def list_ranks(request: web.Request) -> web.Response:
    return web.json_response(container_of(request).players.list_ranks())


@routes.get("/rewards")
async def list_rewards(request: web.Request) -> web.Response:
    return web.json_response(container_of(request).players.list_rewards())


@routes.get("/rewards/available")
async def available_rewards(request: web.Request) -> web.Response:
    rewards = container_of(request).players.available_rewards(request.query.get("playerId"))
    return web.json_response(rewards)


@routes.post("/rewards/{reward_id}/claim")
async def claim_reward(request: web.Request) -> web.Response:
    players = container_of(request).players
    body = await read_json(request)
    stats = await players.claim_reward(body.get("playerId"), request.match_info["reward_id"])
    return ok(stats=players.stats_dict(stats))


# ============================================================================
# Game configuration
# ============================================================================


@routes.get("/config")
async def get_config(request: web.Request) -> web.Response:
    config = container_of(request).config
    return web.json_response({section: config.get(section) for section in config.get_all_keys()})


@routes.put(r"/config/{key:[A-Za-z0-9_.]+}")
async def set_config(request: web.Request) -> web.Response:
    body = await read_json(request)
    if "value" not in body:
        raise ValidationError("value", "is required")

    key = request.match_info["key"]
    config = container_of(request).config
    try:
        await config.set(key, body["value"], modified_by=str(body.get("player") or "api"))
    except ConfigValidationError as exc:
        raise ValidationError("config", str(exc)) from exc
    return ok(key=key, value=config.get(key))


@routes.post("/config/refresh")
async def refresh_config(request: web.Request) -> web.Response:
    await container_of(request).config.refresh()
    return ok()


# ============================================================================
# Health (mounted at the root, not under /api)
# ============================================================================


async def health(request: web.Request) -> web.Response:
    container = request.config_dict[CONTAINER_KEY]
    database_ok = await DatabaseService.health_check()
    logging_health = get_logging_health()

    body = {
        "status": "ok" if database_ok and container.is_initialized else "degraded",
        "database": {"healthy": database_ok, **DatabaseService.get_metrics()},
        "logging": {
            "initialized": logging_health.initialized,
            "queue_size": logging_health.queue_size,
            "queue_max_size": logging_health.queue_max_size,
            "dropped": logging_health.records_dropped,
        },
        "events": request.config_dict[EVENT_BUS_KEY].get_metrics_summary(),
        "services": await container.health_check(),
        "realtime_clients": request.config_dict[HUB_KEY].client_count,
    }
    return web.json_response(body, status=200 if body["status"] == "ok" else 503)
