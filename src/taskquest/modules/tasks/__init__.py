"""
Tasks Module
============

- TaskService: create / edit / delete active tasks, archive reads, bulk clears
- TaskStore / ArchiveStore: in-memory snapshots backed by ``tasks`` and
  ``archived_tasks``
"""

from .service import TaskService
from .store import ArchiveStore, TaskStore

__all__ = ["TaskService", "TaskStore", "ArchiveStore"]
