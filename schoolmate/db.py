"""Database engine, declarative bases and session factories.

Two declarative bases keep the two kinds of tables apart:

- :class:`SystemBase` holds the tenant catalog, which lives in the system
  schema (``settings.SYSTEM_SCHEMA``).
- :class:`TenantBase` holds the school tables that are created once per
  tenant schema. Its tables carry no schema of their own; the schema is
  supplied at execution time through ``schema_translate_map``.

Both map the ``None`` schema, so an engine derived with
:func:`schema_bound_engine` decides where the statements land.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

if TYPE_CHECKING:
    from schoolmate.config.settings import Settings

__all__ = [
    "SystemBase",
    "TenantBase",
    "create_engine",
    "schema_bound_engine",
    "create_session_factory",
]


class SystemBase(DeclarativeBase):
    """Base for tables in the system schema."""


class TenantBase(DeclarativeBase):
    """Base for tables created inside every tenant schema."""


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the single process-wide async engine.

    Every tenant handle shares this engine's connection pool.
    """
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=0,
        pool_pre_ping=True,
        echo=settings.DATABASE_ECHO,
    )


def schema_bound_engine(engine: AsyncEngine, schema_name: str) -> AsyncEngine:
    """Derive an engine whose unqualified tables resolve to ``schema_name``.

    The derived engine is a lightweight proxy: it shares the parent's pool
    and only differs in execution options.
    """
    return engine.execution_options(schema_translate_map={None: schema_name})


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)
