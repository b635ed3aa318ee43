"""
In-memory authoritative stores with single-writer discipline.

Purpose
-------
Each store keeps the committed state of one collection in memory and
persists every mutation through a repository. Writers serialize on the
store's ``asyncio.Lock``; readers take ``snapshot()`` without blocking.

Write protocol
--------------
1. Acquire the writer lock(s) with ``write_locks()`` (fixed order).
2. Read current state from the store, run domain guards.
3. Write rows inside one ``DatabaseService.get_transaction()`` block.
4. After the block commits, call ``commit_*`` to swap the snapshot.

Step 4 is synchronous, so a multi-store swap becomes visible to readers in
a single event-loop step. If step 3 raises, nothing in memory changed.

Usage
-----
    async with write_locks(task_store, archive_store):
        task = task_store.require(task_id)
        async with DatabaseService.get_transaction() as session:
            await task_store.persist_delete(session, task_id)
            await archive_store.persist(session, archived)
        task_store.commit_remove(task_id)
        archive_store.commit_put(archived)
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    Generic,
    Hashable,
    Iterable,
    List,
    Optional,
    TypeVar,
)

from taskquest.core.database.service import DatabaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from taskquest.modules.shared.base_repository import BaseRepository

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
R = TypeVar("R")

# Lock acquisition order for multi-store writes.
LOCK_ORDER = {
    "tasks": 0,
    "archive": 1,
    "players": 2,
    "push_targets": 3,
    "notifications": 4,
}


class SnapshotStore(Generic[K, V, R]):
    """
    Base class for a store of domain values ``V`` keyed by ``K``.

    Subclasses set ``name`` and implement ``key_of``, ``to_row`` and
    ``from_row``. ``load_order`` names the model column snapshots are sorted by
    when loaded from the database.
    """

    name: str = ""
    load_order: str = "id"

    def __init__(self, repository: BaseRepository[R], logger: Logger) -> None:
        self._repo = repository
        self.log = logger
        self.lock = asyncio.Lock()
        self._items: Dict[K, V] = {}

    # ------------------------------------------------------------------ #
    # Mapping hooks
    # ------------------------------------------------------------------ #

    def key_of(self, value: V) -> K:
        raise NotImplementedError

    def to_row(self, value: V) -> R:
        raise NotImplementedError

    def from_row(self, row: R) -> V:
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Reads (never block)
    # ------------------------------------------------------------------ #

    def snapshot(self) -> List[V]:
        return list(self._items.values())

    def get(self, key: K) -> Optional[V]:
        return self._items.get(key)

    def keys(self) -> List[K]:
        return list(self._items.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------ #
    # Startup
    # ------------------------------------------------------------------ #

    async def load(self) -> None:
        """Replace the in-memory state with what the database holds."""
        async with DatabaseService.get_session() as session:
            order_by = getattr(self._repo.model_class, self.load_order)
            rows = await self._repo.find_many_where(session, order_by=order_by)
        values = [self.from_row(row) for row in rows]
        self._items = {self.key_of(value): value for value in values}

        self.log.info(
            f"{self.name} store loaded",
            extra={"store": self.name, "count": len(self._items)},
        )

    # ------------------------------------------------------------------ #
    # Persistence (inside a transaction, writer lock held)
    # ------------------------------------------------------------------ #

    async def persist(self, session: AsyncSession, value: V) -> None:
        self._ensure_writer()
        await self._repo.upsert(session, self.to_row(value))

    async def persist_delete(self, session: AsyncSession, key: K) -> None:
        self._ensure_writer()
        await self._repo.delete_by_id(session, key)

    async def persist_clear(self, session: AsyncSession) -> int:
        self._ensure_writer()
        return await self._repo.delete_where(session)

    # ------------------------------------------------------------------ #
    # Snapshot swaps (after commit, writer lock held)
    # ------------------------------------------------------------------ #

    def commit_put(self, *values: V) -> None:
        self._ensure_writer()
        items = dict(self._items)
        for value in values:
            items[self.key_of(value)] = value
        self._items = items

    def commit_remove(self, *keys: K) -> None:
        self._ensure_writer()
        items = dict(self._items)
        for key in keys:
            items.pop(key, None)
        self._items = items

    def commit_replace(self, values: Iterable[V]) -> None:
        self._ensure_writer()
        self._items = {self.key_of(value): value for value in values}

    def _ensure_writer(self) -> None:
        if not self.lock.locked():
            raise RuntimeError(f"{self.name} store written without holding its writer lock")


@asynccontextmanager
async def write_locks(*stores: SnapshotStore[Any, Any, Any]) -> AsyncIterator[None]:
    """Acquire the writer locks of ``stores`` in ``LOCK_ORDER``."""
    ordered = sorted(set(stores), key=lambda store: LOCK_ORDER.get(store.name, len(LOCK_ORDER)))
    async with AsyncExitStack() as stack:
        for store in ordered:
            await stack.enter_async_context(store.lock)
        yield
