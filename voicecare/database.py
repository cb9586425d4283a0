"""Async engine and sessions for the voice note and report store."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from voicecare.config.settings import settings
from voicecare.models import Base

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def report_schema() -> str | None:
    """Schema holding the report tables, or None to use the server default."""

    configured = (settings.database.schema_name or "").strip()
    if not configured:
        return None
    if not _IDENTIFIER.fullmatch(configured):
        logger.warning("Schema name %r is not a plain identifier; using the default schema", configured)
        return None
    return configured


def _bind_schema(schema: str | None) -> None:
    if schema is None:
        return
    Base.metadata.schema = schema
    for table in Base.metadata.tables.values():
        table.schema = table.schema or schema


def get_engine() -> AsyncEngine:
    """Build the engine on first use so imports never open connections."""

    global _engine, _sessions
    if _engine is None:
        _bind_schema(report_schema())
        options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
        # No pooling for serverless or debug databases.
        if settings.database.serverless or settings.debug:
            options["poolclass"] = NullPool
        _engine = create_async_engine(settings.database.url, **options)
        _sessions = async_sessionmaker(_engine, expire_on_commit=False, class_=AsyncSession)
    return _engine


async def _use_report_schema(target: AsyncSession | AsyncConnection) -> None:
    schema = report_schema()
    if schema:
        await target.execute(text(f'SET search_path TO "{schema}", public'))


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session pointed at the report schema."""

    get_engine()
    assert _sessions is not None
    async with _sessions() as session:
        await _use_report_schema(session)
        yield session


async def init_models() -> None:
    """Create the voice note, report, doctor and slot tables when missing."""

    if not settings.persistence_enabled:
        logger.info("Report persistence disabled; skipping table creation")
        return

    schema = report_schema()
    async with get_engine().begin() as conn:
        if schema:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
        await _use_report_schema(conn)
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Report tables ready in schema %s", schema or "public")


async def dispose_engine() -> None:
    """Release pooled connections if the engine was ever created."""

    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessions = None
