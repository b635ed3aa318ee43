"""
DatabaseService: async engine and session management.

Purpose
-------
Owns the single AsyncEngine and hands out sessions. Every state mutation in
TaskQuest runs inside ``get_transaction()``: commit on success, rollback on
any exception, never a manual ``session.commit()`` in service code.

Pooling
-------
- PostgreSQL (asyncpg): AsyncAdaptedQueuePool sized from Config.
- SQLite file (aiosqlite): NullPool; SQLite serializes writers anyway.
- SQLite ``:memory:``: StaticPool so every session sees the same database.

Usage
-----
>>> async with DatabaseService.get_transaction() as session:
...     session.add(TaskModel(...))
...     # commits on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool, StaticPool

from taskquest.core.config.config import Config
from taskquest.core.database.base import Base
from taskquest.core.exceptions import (
    DatabaseError,
    DatabaseInitializationError,
    DatabaseNotInitializedError,
)
from taskquest.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Configuration frozen for the lifetime of one engine."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


@dataclass
class _DatabaseMetrics:
    transactions_committed: int = 0
    transactions_rolled_back: int = 0
    health_checks_failed: int = 0
    last_error: Optional[str] = None
    rollback_errors: dict[str, int] = field(default_factory=dict)


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(url=None) / shutdown()
    - create_schema() / drop_schema()
    - get_session() for reads
    - get_transaction() for atomic writes
    - health_check()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()
    _metrics: _DatabaseMetrics = _DatabaseMetrics()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if database_url.startswith("sqlite"):
            pool_class: Type[Pool] = StaticPool if ":memory:" in database_url else NullPool
        else:
            pool_class = AsyncAdaptedQueuePool

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
            },
        )
        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the engine and session factory. Idempotent.

        Raises
        ------
        DatabaseInitializationError
            If the URL is missing or the engine cannot be created.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(url)
                cls._config_snapshot = config

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_pre_ping": True,
                        }
                    )
                if config.is_sqlite:
                    engine_kwargs["connect_args"] = {"check_same_thread": False}

                cls._engine = create_async_engine(config.url, **engine_kwargs)

                if config.is_sqlite:
                    event.listen(cls._engine.sync_engine, "connect", _sqlite_pragmas)

                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                cls._metrics = _DatabaseMetrics()

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except Exception as exc:
                cls._engine = None
                cls._session_factory = None
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                if isinstance(exc, DatabaseInitializationError):
                    raise
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def create_schema(cls) -> None:
        """Create every mapped table that does not exist yet."""
        cls._ensure_initialized()
        assert cls._engine is not None

        import taskquest.database.models  # noqa: F401  registers all tables

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema ensured",
            extra={"tables": sorted(Base.metadata.tables.keys())},
        )

    @classmethod
    async def drop_schema(cls) -> None:
        cls._ensure_initialized()
        assert cls._engine is not None

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

        logger.warning("Database schema dropped")

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call repeatedly."""
        async with cls._init_lock:
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """Run ``SELECT 1``. Returns False instead of raising."""
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            cls._metrics.health_checks_failed += 1
            cls._metrics.last_error = str(exc)
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": round((time.perf_counter() - start) * 1000.0, 2)},
            )

    @classmethod
    def get_metrics(cls) -> dict[str, Any]:
        return {
            "initialized": cls.is_initialized(),
            "url_scheme": cls._config_snapshot.url_scheme if cls._config_snapshot else None,
            "transactions_committed": cls._metrics.transactions_committed,
            "transactions_rolled_back": cls._metrics.transactions_rolled_back,
            "health_checks_failed": cls._metrics.health_checks_failed,
            "rollback_errors": dict(cls._metrics.rollback_errors),
        }

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session without automatic commit. Use for reads."""
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally; rolls back and re-raises on any
        exception, including domain errors raised mid-block. Driver errors are
        wrapped in ``DatabaseError``.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException as exc:
                await session.rollback()
                duration_ms = (time.perf_counter() - start) * 1000.0
                error_type = type(exc).__name__
                cls._metrics.transactions_rolled_back += 1
                cls._metrics.rollback_errors[error_type] = (
                    cls._metrics.rollback_errors.get(error_type, 0) + 1
                )

                if isinstance(exc, (OperationalError, DBAPIError)):
                    cls._metrics.last_error = str(exc)
                    logger.error(
                        "Database error in transaction; rolled back",
                        extra={
                            "error": str(exc),
                            "error_type": error_type,
                            "duration_ms": round(duration_ms, 2),
                        },
                        exc_info=True,
                    )
                    raise DatabaseError("transaction", exc) from exc

                logger.debug(
                    "Transaction rolled back",
                    extra={"error_type": error_type, "duration_ms": round(duration_ms, 2)},
                )
                raise
            else:
                cls._metrics.transactions_committed += 1
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": round((time.perf_counter() - start) * 1000.0, 2)},
                )


def _sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()
