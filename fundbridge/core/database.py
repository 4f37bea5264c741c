from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from fundbridge.config import settings

logger = logging.getLogger(__name__)

# Global engine shared by every SQL-backed repository
engine: Engine | None = None


def build_engine(database_url: str, *, echo: bool | None = None) -> Engine:
    """Create a sync SQLAlchemy engine, coercing async driver names."""
    parsed_url = make_url(database_url)
    sync_url, connect_args, drivername = _coerce_sync_database_url(parsed_url)
    is_sqlite = drivername.startswith("sqlite")
    engine_kwargs: dict[str, Any] = {
        "echo": settings.debug if echo is None else echo,
        "connect_args": connect_args,
        "pool_pre_ping": not is_sqlite,
    }
    if is_sqlite and parsed_url.database in (None, "", ":memory:"):
        # one shared connection, otherwise every session sees an empty database
        engine_kwargs["poolclass"] = StaticPool
    elif not is_sqlite:
        pool_min = max(settings.db_pool_min_size, 1)
        pool_max = max(settings.db_pool_max_size, pool_min)
        engine_kwargs["pool_size"] = pool_min
        engine_kwargs["max_overflow"] = max(pool_max - pool_min, 0)
        engine_kwargs["pool_recycle"] = 300
    return create_engine(sync_url, **engine_kwargs)


def init_database() -> Engine | None:
    """Initialize the shared engine if DATABASE_URL is provided."""
    global engine

    if engine is not None:
        return engine
    if not settings.database_url:
        logger.info("No DATABASE_URL provided, running with in-memory stores")
        return None

    try:
        engine = build_engine(settings.database_url)
        if settings.database_auto_create_schema:
            create_schema(engine)
        logger.info("Database connection initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
    return engine


def create_schema(target: Engine) -> None:
    """Create every SQLModel table known to the application."""
    # imported for their side effect of registering tables on SQLModel.metadata
    from fundbridge.models import analysis_record, fund_request_record, subscription, user  # noqa: F401

    SQLModel.metadata.create_all(target)


@contextmanager
def session_scope(target: Engine) -> Iterator[Session]:
    """Yield a session that rolls back on error."""
    with Session(target) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise


def check_database_health() -> bool:
    """Check if database is accessible."""
    if not engine:
        return True  # No database configured, consider healthy

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def _coerce_sync_database_url(url: URL) -> tuple[str, dict[str, Any], str]:
    """Convert async connection strings into sync SQLAlchemy URLs."""
    drivername = url.drivername
    connect_args: dict[str, Any] = {}
    if drivername.endswith("+asyncpg"):
        drivername = drivername.replace("+asyncpg", "+psycopg2")
    elif drivername.endswith("+psycopg"):
        drivername = drivername.replace("+psycopg", "+psycopg2")
    elif drivername.endswith("+aiosqlite"):
        drivername = "sqlite"
    sync_url = url.set(drivername=drivername)
    query = dict(sync_url.query) if sync_url.query else {}
    removed_ssl = query.pop("ssl", None) is not None
    sync_url = sync_url.set(query=query)

    if drivername.startswith("postgresql") and "sslmode" not in query and removed_ssl:
        connect_args["sslmode"] = "require"
    if drivername.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    return sync_url.render_as_string(hide_password=False), connect_args, drivername
