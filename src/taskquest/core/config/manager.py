"""
Dynamic game configuration for TaskQuest.

Purpose
-------
Serves the tunable game balance (scoring constants, level curve, rank
titles, reward catalog) from an in-memory cache built from:

  1. YAML defaults under ``Config.CONFIG_DIR`` (deep-merged, all files).
  2. Database overrides in ``game_config`` (one row per top-level key),
     deep-merged over the YAML values. Highest precedence.

Reads are synchronous and never touch the database. Writes go through
``set()``, which persists the override in a transaction, swaps the cache
entry and publishes ``config.updated`` on the attached EventBus.

Dependencies
------------
- PyYAML for the defaults
- SQLAlchemy (via DatabaseService) for the override table
"""

from __future__ import annotations

import asyncio
import copy
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, MutableMapping, Optional

import yaml
from sqlalchemy import select

from taskquest.core.config.config import Config
from taskquest.core.logging.logger import get_logger
from taskquest.database.models.game_config import GameConfig

if TYPE_CHECKING:
    from taskquest.core.event.bus import EventBus

logger = get_logger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when ConfigManager cannot initialize correctly."""


class ConfigWriteError(ConfigManagerError):
    """Raised when a configuration write fails."""


class ConfigValidationError(ConfigWriteError):
    """Raised when a write names an unknown section or a validator rejects the value."""


__all__ = [
    "ConfigManager",
    "ConfigManagerError",
    "ConfigInitializationError",
    "ConfigWriteError",
    "ConfigValidationError",
]


@dataclass(slots=True)
class _ConfigManagerMetrics:
    gets: int = 0
    sets: int = 0
    cache_misses: int = 0
    refresh_count: int = 0
    errors: int = 0
    total_set_time_ms: float = 0.0


class ConfigManager:
    """
    Class-level configuration cache. Never instantiated.

    Examples
    --------
    >>> await ConfigManager.initialize()
    >>> ConfigManager.get_int("scoring.base_multiplier", 10)
    10
    >>> await ConfigManager.set("scoring.early_bonus", 25, modified_by="1")
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _cache_timestamps: Dict[str, datetime] = {}
    _validators: Dict[str, Callable[[Any], Any]] = {}

    _initialized: bool = False
    _init_lock: asyncio.Lock = asyncio.Lock()
    _write_lock: asyncio.Lock = asyncio.Lock()

    _metrics: _ConfigManagerMetrics = _ConfigManagerMetrics()
    _event_bus: Optional["EventBus"] = None
    _use_database: bool = True
    _config_dir: Optional[Path] = None

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge ``source`` into ``target`` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        cls._defaults = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            cls._cache = {}
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                cls._metrics.errors += 1
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        cls._cache = copy.deepcopy(cls._defaults)

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "total_cache_keys": len(cls._cache)},
        )

    # =========================================================================
    # INITIALIZATION / REFRESH
    # =========================================================================

    @classmethod
    async def initialize(
        cls,
        config_dir: Optional[Path] = None,
        *,
        use_database: bool = True,
    ) -> None:
        """
        Load YAML defaults and apply database overrides (idempotent).

        Raises
        ------
        ConfigInitializationError
            If the override table cannot be read. The cache still holds the
            YAML defaults so callers may choose to continue degraded.
        """
        if cls._initialized:
            return

        async with cls._init_lock:
            if cls._initialized:
                return

            init_start = time.perf_counter()
            cls._use_database = use_database
            cls._config_dir = config_dir or Config.CONFIG_DIR
            cls._load_yaml_configs(cls._config_dir)

            if use_database:
                try:
                    await cls._apply_database_overrides()
                except Exception as exc:
                    cls._metrics.errors += 1
                    cls._initialized = True
                    logger.error(
                        "ConfigManager initialization failed; falling back to defaults",
                        extra={
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                            "cache_keys_after_fallback": len(cls._cache),
                        },
                        exc_info=True,
                    )
                    raise ConfigInitializationError(
                        "Failed to initialize ConfigManager"
                    ) from exc

            cls._initialized = True

            elapsed_ms = (time.perf_counter() - init_start) * 1000
            logger.info(
                "ConfigManager initialization completed",
                extra={
                    "latency_ms": round(elapsed_ms, 2),
                    "source": "database+yaml" if use_database else "yaml",
                },
            )

    @classmethod
    async def _apply_database_overrides(cls) -> None:
        from taskquest.core.database.service import DatabaseService

        async with DatabaseService.get_session() as session:
            result = await session.execute(select(GameConfig))
            overrides: List[GameConfig] = list(result.scalars().all())

        merged = copy.deepcopy(cls._defaults)
        for cfg in overrides:
            cls._merge_override(merged, cfg.config_key, cfg.config_value)
            cls._cache_timestamps[cfg.config_key] = datetime.now(timezone.utc)
        cls._cache = merged

        logger.info(
            "Database config overrides applied",
            extra={"override_count": len(overrides)},
        )

    @staticmethod
    def _merge_override(target: Dict[str, Any], top_key: str, value: Any) -> None:
        if isinstance(value, dict) and isinstance(target.get(top_key), dict):
            ConfigManager._deep_merge_dict(target[top_key], value)
        else:
            target[top_key] = copy.deepcopy(value)

    @classmethod
    async def refresh(cls) -> None:
        """Re-read the YAML files and the override table."""
        async with cls._write_lock:
            cls._initialized = False
            await cls.initialize(cls._config_dir, use_database=cls._use_database)
            cls._metrics.refresh_count += 1

        if cls._event_bus is not None:
            await cls._event_bus.publish(
                "config.refreshed",
                {"timestamp": datetime.now(timezone.utc).isoformat()},
            )

    @classmethod
    def attach_event_bus(cls, event_bus: Optional["EventBus"]) -> None:
        cls._event_bus = event_bus

    @classmethod
    def clear_cache(cls) -> None:
        """Reset to an uninitialized state. Intended for tests."""
        cls._cache = {}
        cls._defaults = {}
        cls._cache_timestamps.clear()
        cls._validators.clear()
        cls._initialized = False
        cls._event_bus = None
        cls._config_dir = None
        cls._metrics = _ConfigManagerMetrics()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @classmethod
    def register_validator(cls, key: str, validator: Callable[[Any], Any]) -> None:
        """
        Register a callable run on every ``set()`` of the exact dotted key.

        The validator returns the (possibly coerced) value or raises
        ValueError/TypeError to reject it.
        """
        cls._validators[key] = validator

    @classmethod
    def _apply_validator(cls, key: str, value: Any) -> Any:
        validator = cls._validators.get(key)
        if validator is None:
            return value
        try:
            return validator(value)
        except (TypeError, ValueError) as exc:
            cls._metrics.errors += 1
            raise ConfigValidationError(f"Invalid value for '{key}': {exc}") from exc

    # =========================================================================
    # READS
    # =========================================================================

    @classmethod
    def _resolve(cls, source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Resolve a dot-notation key (e.g. ``"scoring.early_bonus"``).

        Read-only; never touches the database.
        """
        cls._metrics.gets += 1

        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; "
                "using defaults only",
                extra={"config_key": key},
            )

        value = cls._resolve(cls._cache, key)
        if value is None:
            cls._metrics.cache_misses += 1
            return default
        return value

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        value = cls.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Config value is not an integer; using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return default

    @classmethod
    def get_float(cls, key: str, default: float) -> float:
        value = cls.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Config value is not a number; using default",
                extra={"config_key": key, "value": repr(value), "default": default},
            )
            return float(default)

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        value = cls.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"true", "yes", "1", "on"}
        return bool(value)

    @classmethod
    def get_list(cls, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        value = cls.get(key, None)
        if isinstance(value, list):
            return copy.deepcopy(value)
        return list(default or [])

    @classmethod
    def get_all_keys(cls) -> List[str]:
        return list(cls._cache.keys())

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    async def set(
        cls,
        key: str,
        value: Any,
        modified_by: str = "system",
        emit_event: bool = True,
    ) -> None:
        """
        Persist an override and update the cache.

        Dotted keys update one leaf of the top-level document; the rest of the
        stored override is kept.

        Raises
        ------
        ConfigValidationError
            If the section is unknown or a validator rejects the value.
        ConfigWriteError
            If the database write fails.
        """
        from taskquest.core.database.service import DatabaseService

        start_time = time.perf_counter()
        cls._metrics.sets += 1

        parts = key.split(".")
        top_key = parts[0]
        if top_key not in cls._defaults:
            cls._metrics.errors += 1
            raise ConfigValidationError(f"Unknown configuration section '{top_key}'")

        value_to_persist = cls._apply_validator(key, value)

        async with cls._write_lock:
            previous_value = cls.get(key)

            try:
                async with DatabaseService.get_transaction() as session:
                    result = await session.execute(
                        select(GameConfig).where(GameConfig.config_key == top_key)
                    )
                    cfg: Optional[GameConfig] = result.scalar_one_or_none()
                    stored = copy.deepcopy(cfg.config_value) if cfg is not None else None

                    if len(parts) > 1:
                        base: Dict[str, Any] = stored if isinstance(stored, dict) else {}
                        current = base
                        for segment in parts[1:-1]:
                            nested = current.get(segment)
                            if not isinstance(nested, dict):
                                nested = {}
                                current[segment] = nested
                            current = nested
                        current[parts[-1]] = value_to_persist
                        final_value: Any = base
                    else:
                        final_value = value_to_persist

                    if cfg is None:
                        session.add(
                            GameConfig(
                                config_key=top_key,
                                config_value=final_value,
                                modified_by=modified_by,
                            )
                        )
                    else:
                        cfg.config_value = final_value
                        cfg.modified_by = modified_by

            except Exception as exc:
                cls._metrics.errors += 1
                logger.error(
                    "Config update failed",
                    extra={
                        "config_key": key,
                        "modified_by": modified_by,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise ConfigWriteError(f"Failed to update config '{key}'") from exc

            # Committed; rebuild the top-level entry from defaults + override.
            rebuilt = copy.deepcopy(cls._defaults)
            cls._merge_override(rebuilt, top_key, final_value)
            cls._cache[top_key] = rebuilt.get(top_key)
            cls._cache_timestamps[top_key] = datetime.now(timezone.utc)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        cls._metrics.total_set_time_ms += elapsed_ms

        logger.info(
            "Configuration updated",
            extra={
                "config_key": key,
                "modified_by": modified_by,
                "latency_ms": round(elapsed_ms, 2),
            },
        )

        if emit_event and cls._event_bus is not None:
            await cls._event_bus.publish(
                "config.updated",
                {
                    "config_key": key,
                    "previous_value": previous_value,
                    "new_value": value_to_persist,
                    "modified_by": modified_by,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            )

    # =========================================================================
    # METRICS
    # =========================================================================

    @classmethod
    def health_snapshot(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "cached_configs": len(cls._cache),
            "gets": cls._metrics.gets,
            "sets": cls._metrics.sets,
            "cache_misses": cls._metrics.cache_misses,
            "refresh_count": cls._metrics.refresh_count,
            "errors": cls._metrics.errors,
        }
