"""
Static configuration for TaskQuest.

Purpose
-------
Centralized process-level configuration loaded from environment variables
(with ``.env`` support via python-dotenv), type validation and bounds
checking. Game balance values live in ConfigManager, not here.

Responsibilities
----------------
- Load configuration from environment variables with safe defaults
- Validate critical settings on startup
- Create required directories (logs, data)
- Track which values came from the environment and which from defaults

Environment Variables
---------------------
- ENVIRONMENT: development / testing / staging / production
- DEBUG, LOG_LEVEL, LOG_JSON
- DATABASE_URL: SQLAlchemy async URL (default: SQLite file under data/)
- DATABASE_ECHO, DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW
- HTTP_HOST, HTTP_PORT
- PUSH_TIMEOUT_SECONDS, PUSH_PRIORITY
- CONFIG_DIR: directory holding the YAML game defaults
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("bogus") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and any parse errors."""

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


class Config:
    """
    Centralized static configuration for the TaskQuest server.

    Class-level attributes only; never instantiated.

    Usage
    -----
    >>> Config.validate()
    >>> Config.DATABASE_URL
    'sqlite+aiosqlite:///.../data/taskquest.db'
    >>> Config.is_production()
    False
    """

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Directories
    # =========================================================================
    PROJECT_ROOT = Path(__file__).resolve().parents[4]
    LOGS_DIR = PROJECT_ROOT / "logs"
    DATA_DIR = PROJECT_ROOT / "data"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Database
    # =========================================================================
    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 3600

    # =========================================================================
    # Environment
    # =========================================================================
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True

    # =========================================================================
    # HTTP server
    # =========================================================================
    APP_NAME: str = "TaskQuest"
    APP_VERSION: str = "1.0.0"
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 3578

    # =========================================================================
    # Push delivery
    # =========================================================================
    PUSH_TIMEOUT_SECONDS: int = 5
    PUSH_PRIORITY: int = 5

    @classmethod
    def _init_metrics(cls):
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Parse an integer from the environment, falling back on bad input.

        >>> Config._safe_int("HTTP_PORT", 3578, min_val=1, max_val=65535)
        3578
        """
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """Parse true/false, yes/no, 1/0, on/off (case-insensitive)."""
        cls._init_metrics()
        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            value = True
        elif normalized in {"false", "no", "0", "off"}:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_str(cls, key: str, default: str, required: bool = False) -> str:
        cls._init_metrics()
        value = os.getenv(key, default)
        from_env = key in os.environ

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            logging.error(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)

        return value

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def default_database_url(cls) -> str:
        return f"sqlite+aiosqlite:///{cls.DATA_DIR / 'taskquest.db'}"

    @classmethod
    def load(cls) -> None:
        """Load every value from the environment. Safe to call repeatedly."""
        cls._init_metrics()

        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = bool(cls._safe_bool("DEBUG", False))
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))

        config_dir = cls._safe_str("CONFIG_DIR", "")
        if config_dir:
            cls.CONFIG_DIR = Path(config_dir).resolve()
        logs_dir = cls._safe_str("LOGS_DIR", "")
        if logs_dir:
            cls.LOGS_DIR = Path(logs_dir).resolve()

        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", cls.default_database_url())
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 3600, min_val=60
        )

        cls.HTTP_HOST = cls._safe_str("HTTP_HOST", "0.0.0.0")
        cls.HTTP_PORT = cls._safe_int("HTTP_PORT", 3578, min_val=1, max_val=65535)

        cls.PUSH_TIMEOUT_SECONDS = cls._safe_int(
            "PUSH_TIMEOUT_SECONDS", 5, min_val=1, max_val=60
        )
        cls.PUSH_PRIORITY = cls._safe_int("PUSH_PRIORITY", 5, min_val=0, max_val=10)

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Load and validate configuration, creating the logs and data folders.

        Raises
        ------
        ValueError:
            In production, when a critical value is missing.
        """
        if cls._validated:
            return

        logger = logging.getLogger(__name__)
        cls._init_metrics()

        try:
            cls.load()

            if not cls.DATABASE_URL:
                raise ValueError("DATABASE_URL environment variable is required")

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            cls.LOGS_DIR.mkdir(parents=True, exist_ok=True)
            cls.DATA_DIR.mkdir(parents=True, exist_ok=True)

            if cls.is_production():
                if cls.DATABASE_URL.startswith("sqlite"):
                    logger.warning("Production environment using a SQLite database")
                if "user:password" in cls.DATABASE_URL:
                    logger.error("SECURITY: Using default database credentials in production!")
                if cls.DEBUG:
                    logger.warning("DEBUG mode enabled in production!")

            cls._validated = True

            if cls._metrics:
                logger.info(f"Configuration loaded: {cls._metrics.get_summary()}")
                if cls._metrics.validation_errors:
                    logger.warning(
                        f"Configuration warnings: {cls._metrics.validation_errors}"
                    )

        except (ValueError, OSError) as e:
            logger.warning(f"Config validation warning: {e}")
            if cls.is_production():
                logger.error("Configuration validation failed in production!")
                raise

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "testing"

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive configuration summary for logs and /health."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "database_backend": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "http_port": cls.HTTP_PORT,
            "version": cls.APP_VERSION,
        }

    @classmethod
    def reload_safe_configs(cls) -> None:
        """Reload settings that can change without restart (log level, debug)."""
        logger = logging.getLogger(__name__)
        logger.info("Reloading safe configuration values...")
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", cls.LOG_LEVEL)
        cls.DEBUG = bool(cls._safe_bool("DEBUG", cls.DEBUG))
        cls.PUSH_TIMEOUT_SECONDS = cls._safe_int(
            "PUSH_TIMEOUT_SECONDS", cls.PUSH_TIMEOUT_SECONDS, min_val=1, max_val=60
        )
        logger.info("Safe configuration values reloaded successfully")


Config.load()
