"""
Schema-scoped data handles.

:class:`SchemaConnectionRegistry` maps a tenant schema name to a
:class:`SchemaHandle` whose every statement runs against that schema.
Handles are built on first use and cached in a bounded LRU map.

Handles are cheap: they all share the process-wide engine's connection
pool and differ only in execution options, so evicting one never closes
a connection.  Two mechanisms scope a handle to its schema:

- ``schema_translate_map`` rewrites every ORM / Core table reference, and
- ``SET LOCAL search_path`` at the start of each transaction covers raw
  ``text()`` SQL.  ``SET LOCAL`` ends with the transaction, so a pooled
  connection never carries one tenant's search path into another's.

Example:
    registry = SchemaConnectionRegistry(engine, max_size=256)
    handle = registry.get("tenant_0001")
    async with handle.session() as session:
        await session.execute(delete(OtpCode).where(...))
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from schoolmate.db import TenantBase, create_session_factory, schema_bound_engine
from schoolmate.models import school  # noqa: F401  registers the tenant tables
from schoolmate.tenancy.context import require_tenant
from schoolmate.tenancy.errors import SchemaRegistryError
from schoolmate.tenancy.identity import is_valid_schema_name

logger = logging.getLogger(__name__)


class SchemaHandle:
    """Data-access handle bound to one tenant schema.

    Attributes:
        schema_name: The schema every operation is scoped to.
        engine: Engine derived from the shared engine with this schema's
            translate map.
    """

    def __init__(self, schema_name: str, engine: AsyncEngine):
        self.schema_name = schema_name
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session inside a transaction scoped to this schema.

        The transaction commits when the block exits normally and rolls
        back if it raises.
        """
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(text(f'SET LOCAL search_path TO "{self.schema_name}"'))
                yield session

    async def create_schema(self) -> list[str]:
        """Create the schema if missing, then the full tenant table set.

        Idempotent: existing tables are left alone.

        Returns:
            Names of the tables that make up a tenant schema.
        """
        async with self.engine.begin() as conn:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{self.schema_name}"'))
            await conn.run_sync(TenantBase.metadata.create_all)
        tables = list(TenantBase.metadata.tables)
        logger.info("Materialized schema %s with %d tables", self.schema_name, len(tables))
        return tables

    def __repr__(self) -> str:
        return f"<SchemaHandle {self.schema_name}>"


HandleFactory = Callable[[str], SchemaHandle]


def engine_handle_factory(engine: AsyncEngine) -> HandleFactory:
    """Factory deriving each handle from ``engine`` with a schema translate map."""

    def build(schema_name: str) -> SchemaHandle:
        return SchemaHandle(schema_name, schema_bound_engine(engine, schema_name))

    return build


class SchemaConnectionRegistry:
    """Bounded, thread-safe cache of schema handles.

    ``get()`` is idempotent: while a schema stays cached every call
    returns the same handle instance.  Construction happens under the
    registry lock, so concurrent first requests for one schema never
    produce two divergent handles.  When the cache is full the least
    recently used handle is dropped; the next ``get()`` for it builds an
    equivalent one.

    Attributes:
        max_size: Maximum number of cached handles.
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        max_size: int = 256,
        handle_factory: HandleFactory | None = None,
    ):
        """Initialize the registry.

        Args:
            engine: Shared engine that handles derive from. Required
                unless ``handle_factory`` is given.
            max_size: Maximum number of cached handles.
            handle_factory: Builds a handle for a schema name. Defaults to
                deriving a schema-bound engine from ``engine``.
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if handle_factory is None:
            if engine is None:
                raise ValueError("Either engine or handle_factory is required")
            handle_factory = engine_handle_factory(engine)
        self.max_size = max_size
        self._factory = handle_factory
        self._handles: OrderedDict[str, SchemaHandle] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, schema_name: str) -> SchemaHandle:
        """Return the handle for ``schema_name``, building it on first use.

        Raises:
            SchemaRegistryError: If the name is not a tenant schema name or
                the handle cannot be built. Failed builds are not cached.
        """
        if not is_valid_schema_name(schema_name):
            raise SchemaRegistryError(f"Invalid tenant schema name: {schema_name!r}")

        with self._lock:
            handle = self._handles.get(schema_name)
            if handle is not None:
                self._handles.move_to_end(schema_name)
                return handle

            try:
                handle = self._factory(schema_name)
            except SchemaRegistryError:
                raise
            except Exception as exc:
                raise SchemaRegistryError(
                    f"Could not build handle for schema {schema_name}: {exc}"
                ) from exc

            self._handles[schema_name] = handle
            if len(self._handles) > self.max_size:
                evicted, _ = self._handles.popitem(last=False)
                logger.debug("Evicted schema handle %s", evicted)
            return handle

    def current(self) -> SchemaHandle:
        """Handle for the tenant bound to the current context.

        Raises:
            TenantContextError: If no tenant is bound.
        """
        return self.get(require_tenant().schema_name)

    def schemas(self) -> list[str]:
        """Cached schema names, least recently used first."""
        with self._lock:
            return list(self._handles)

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()

    def __contains__(self, schema_name: object) -> bool:
        with self._lock:
            return schema_name in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)


@asynccontextmanager
async def tenant_session(registry: SchemaConnectionRegistry) -> AsyncIterator[AsyncSession]:
    """Session for the currently bound tenant.

    Raises:
        TenantContextError: If no tenant is bound.
    """
    async with registry.current().session() as session:
        yield session
