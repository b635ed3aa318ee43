"""
Notifications Module
====================

- NotificationBus: durable log of level-up and reward notifications with
  per-player acknowledgement and roster-based garbage collection
- PushDispatcher / PushNotifier: best-effort outbound pushes driven by events
"""

from .bus import NotificationBus
from .push import PushDispatcher, PushNotifier
from .store import NotificationStore

__all__ = ["NotificationBus", "NotificationStore", "PushDispatcher", "PushNotifier"]
