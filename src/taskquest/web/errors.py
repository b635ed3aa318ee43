"""
Request-boundary error handling.

Maps exceptions to HTTP responses with a uniform failure body:

    {"success": false, "error": {"code": ..., "message": ..., "details": {...}}}

- ValidationError     -> 400
- AuthorizationError  -> 403
- NotFoundError       -> 404
- PreconditionError   -> 409
- anything else       -> 500 (logged with traceback, generic message)
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

from taskquest.core.exceptions import TaskQuestInfrastructureError
from taskquest.core.logging.logger import get_logger
from taskquest.modules.shared.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    TaskQuestError,
    ValidationError,
    should_alert,
)

logger = get_logger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (PreconditionError, 409),
)


def status_for(exc: TaskQuestError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except TaskQuestError as exc:
        status = status_for(exc)
        logger.info(
            "Request rejected",
            extra={
                "status": status,
                "error_code": exc.error_code,
                "error_type": type(exc).__name__,
                "reason": exc.message,
            },
        )
        return web.json_response(error_body(exc.error_code, exc.message, exc.details), status=status)
    except TaskQuestInfrastructureError as exc:
        log = logger.critical if should_alert(exc) else logger.error
        log(
            "Infrastructure failure while handling request",
            extra={"error_code": exc.error_code, "error_type": type(exc).__name__},
            exc_info=True,
        )
        status = 503 if exc.is_retryable else 500
        return web.json_response(error_body(exc.error_code, "service temporarily unavailable"), status=status)
    except Exception as exc:
        logger.error(
            "Unhandled error while handling request",
            extra={"error_type": type(exc).__name__, "error": str(exc)},
            exc_info=True,
        )
        return web.json_response(error_body("INTERNAL_ERROR", "internal server error"), status=500)
