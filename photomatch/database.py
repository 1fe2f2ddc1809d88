"""
photomatch — Async Database Engine & Session Factory

Provides two connection strategies:

1. **Cloud Run (production)** – Uses ``cloud-sql-python-connector`` with
   automatic IAM authentication.  Activated when
   ``CLOUD_SQL_USE_UNIX_SOCKET`` is *True* **and** a valid
   ``CLOUD_SQL_INSTANCE_CONNECTION`` is provided.

2. **Local development** – A plain connection string read from
   ``DATABASE_URL`` (``asyncpg`` for Postgres, ``aiosqlite`` for tests).

The engine is built on first use, so importing models or repositories never
opens a connection.
"""

from __future__ import annotations

import logging

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from photomatch.config import get_settings

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Declarative base for all ORM models
# ------------------------------------------------------------------ #

class Base(DeclarativeBase):
    """Shared declarative base for every photomatch table."""
    pass


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


# ------------------------------------------------------------------ #
# Pool configuration (Postgres only)
# ------------------------------------------------------------------ #

_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


# ------------------------------------------------------------------ #
# Engine construction helpers
# ------------------------------------------------------------------ #

def _build_cloud_sql_engine() -> AsyncEngine:
    """Create an async engine that connects through the Cloud SQL Python
    Connector (``project:region:instance``) with IAM authentication."""
    from google.cloud.sql.connector import Connector

    settings = get_settings()

    connector = Connector()

    async def _get_connection():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    engine = create_async_engine(
        "postgresql+asyncpg://",
        async_creator=_get_connection,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **_POOL_KWARGS,
    )

    logger.info(
        "Database engine created via Cloud SQL Connector (%s)",
        settings.CLOUD_SQL_INSTANCE_CONNECTION,
    )
    return engine


def build_engine_from_url(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine from a URL, upgrading bare ``postgresql://``."""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    kwargs = {} if url.startswith("sqlite") else dict(_POOL_KWARGS)
    return create_async_engine(url, echo=echo, **kwargs)


def _create_engine() -> AsyncEngine:
    """Select the appropriate engine builder based on configuration."""
    settings = get_settings()

    use_cloud_sql = (
        settings.CLOUD_SQL_USE_UNIX_SOCKET
        and settings.CLOUD_SQL_INSTANCE_CONNECTION
    )
    if use_cloud_sql:
        return _build_cloud_sql_engine()

    engine = build_engine_from_url(
        settings.DATABASE_URL, echo=(settings.LOG_LEVEL == "DEBUG")
    )
    logger.info("Database engine created from DATABASE_URL (local / dev)")
    return engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# ------------------------------------------------------------------ #
# Lazily initialised engine & session factory
# ------------------------------------------------------------------ #

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None
