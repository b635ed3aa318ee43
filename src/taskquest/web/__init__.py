"""HTTP and WebSocket boundary (aiohttp)."""

from taskquest.web.app import create_app

__all__ = ["create_app"]
