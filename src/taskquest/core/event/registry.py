"""
ListenerRegistry: storage and lookup for EventBus listeners.

Design Decisions
----------------
- Synchronous methods: the asyncio loop is single-threaded, so dictionary
  mutations are atomic between awaits and need no lock.
- Listeners are kept sorted by (priority, identifier) for deterministic order.
- ``extract_listeners_for_event`` collects and prunes once=True listeners in
  one step so two in-flight publishes never both run a one-shot listener.
"""

from __future__ import annotations

from taskquest.core.event.router import EventRouter
from taskquest.core.event.types import EventListener


class ListenerRegistry:
    """Registry for exact and wildcard event listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._wildcard_listeners: list[tuple[str, EventListener]] = []
        self._router = EventRouter()

    def add_listener(
        self,
        event_name: str,
        listener: EventListener,
        *,
        allow_duplicates: bool,
    ) -> bool:
        """
        Register a listener. Returns False when prevented as a duplicate.
        """
        if "*" in event_name:
            if not allow_duplicates and any(
                lst.identifier == listener.identifier
                for pattern, lst in self._wildcard_listeners
                if pattern == event_name
            ):
                return False
            self._wildcard_listeners.append((event_name, listener))
            self._wildcard_listeners.sort(
                key=lambda pl: (pl[1].priority.value, pl[1].identifier)
            )
            return True

        listeners = self._listeners.setdefault(event_name, [])
        if not allow_duplicates and any(
            lst.identifier == listener.identifier for lst in listeners
        ):
            return False

        listeners.append(listener)
        listeners.sort(key=lambda lst: (lst.priority.value, lst.identifier))
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        removed = False

        if event_name in self._listeners:
            original_count = len(self._listeners[event_name])
            self._listeners[event_name] = [
                lst
                for lst in self._listeners[event_name]
                if lst.identifier != identifier
            ]
            removed = len(self._listeners[event_name]) < original_count
            if not self._listeners[event_name]:
                del self._listeners[event_name]

        original_wc_count = len(self._wildcard_listeners)
        self._wildcard_listeners = [
            (pattern, lst)
            for pattern, lst in self._wildcard_listeners
            if not (pattern == event_name and lst.identifier == identifier)
        ]
        return removed or len(self._wildcard_listeners) < original_wc_count

    def clear_all(self) -> int:
        total = self.get_total_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        return total

    def extract_listeners_for_event(self, event_name: str) -> list[EventListener]:
        """
        Collect every listener for ``event_name`` (exact + wildcard) and prune
        the once=True ones, returning them sorted by (priority, identifier).
        """
        result: list[EventListener] = []

        exact_list = self._listeners.get(event_name, [])
        kept_exact: list[EventListener] = []
        for listener in exact_list:
            result.append(listener)
            if not listener.once:
                kept_exact.append(listener)

        if kept_exact:
            self._listeners[event_name] = kept_exact
        elif event_name in self._listeners:
            del self._listeners[event_name]

        kept_wildcards: list[tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if self._router.matches(event_name, pattern):
                result.append(listener)
                if listener.once:
                    continue
            kept_wildcards.append((pattern, listener))
        self._wildcard_listeners = kept_wildcards

        result.sort(key=lambda lst: (lst.priority.value, lst.identifier))
        return result

    def get_listener_count_for_event(self, event_name: str) -> int:
        exact = len(self._listeners.get(event_name, []))
        wildcard = sum(
            1
            for pattern, _ in self._wildcard_listeners
            if self._router.matches(event_name, pattern)
        )
        return exact + wildcard

    def get_total_listener_count(self) -> int:
        return sum(len(lst) for lst in self._listeners.values()) + len(
            self._wildcard_listeners
        )

    def get_all_event_keys(self) -> list[str]:
        keys = set(self._listeners.keys())
        keys.update(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(keys)
