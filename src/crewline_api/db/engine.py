"""Engine construction and session helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from fastapi import FastAPI
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .base import metadata

logger = logging.getLogger(__name__)


class DatabaseSettings(Protocol):
    database_url: str
    database_echo: bool


def _is_memory_sqlite(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def _ensure_sqlite_parent(url: URL) -> None:
    if _is_memory_sqlite(url):
        return
    Path(str(url.database)).expanduser().parent.mkdir(parents=True, exist_ok=True)


def build_engine(settings: DatabaseSettings) -> Engine:
    if not settings.database_url:
        raise ValueError("Settings.database_url is required.")
    url = make_url(str(settings.database_url))

    if url.get_backend_name() == "sqlite":
        _ensure_sqlite_parent(url)
        kwargs: dict[str, object] = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every checkout sees an empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=settings.database_echo, **kwargs)

    return create_engine(url, echo=settings.database_echo, pool_pre_ping=True)


def create_schema(engine: Engine) -> None:
    """Create any missing tables for the registered models."""
    from crewline_api import models  # noqa: F401 - registers mappers on the metadata

    metadata.create_all(engine)
    logger.info("db.schema.ensured", extra={"tables": sorted(metadata.tables)})


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Iterator[Session]:
    """Standard session scope with commit/rollback."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(app: FastAPI, settings: DatabaseSettings) -> sessionmaker[Session]:
    engine = build_engine(settings)
    existing_engine = getattr(app.state, "db_engine", None)
    if existing_engine is not None:
        existing_engine.dispose()

    create_schema(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    app.state.db_engine = engine
    app.state.db_sessionmaker = session_factory
    return session_factory


def shutdown_db(app: FastAPI) -> None:
    engine = getattr(app.state, "db_engine", None)
    if engine is not None:
        engine.dispose()
    app.state.db_engine = None
    app.state.db_sessionmaker = None


__all__ = [
    "DatabaseSettings",
    "build_engine",
    "create_schema",
    "init_db",
    "session_scope",
    "shutdown_db",
]
