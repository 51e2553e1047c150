from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, metadata
from .engine import build_engine, create_schema, init_db, session_scope, shutdown_db

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "build_engine",
    "create_schema",
    "init_db",
    "metadata",
    "session_scope",
    "shutdown_db",
]
