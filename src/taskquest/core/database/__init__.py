from taskquest.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from taskquest.core.database.service import DatabaseService

__all__ = ["Base", "IdMixin", "TimestampMixin", "utc_now", "DatabaseService"]
