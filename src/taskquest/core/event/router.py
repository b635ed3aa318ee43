"""
EventRouter: wildcard event-name matching.

Supported patterns
------------------
- Exact:    "task.approved"      matches only "task.approved"
- Global:   "*"                  matches any event
- Prefix:   "task.*"             matches "task.created", "task.deleted", ...
- Suffix:   "*.cleared"          matches "tasks.cleared", "archive.cleared"
- Sandwich: "player.*.updated"   matches "player.stats.updated"

Matching is case-sensitive; repeated wildcards ("**") collapse to one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> router = EventRouter()
    >>> router.matches("task.approved", "task.*")
    True
    >>> router.matches("task.approved", "player.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")

        if parts[0] and not event_name.startswith(parts[0]):
            return False

        if parts[-1] and not event_name.endswith(parts[-1]):
            return False

        # Middle pieces must appear in order after the prefix.
        idx = len(parts[0])
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
