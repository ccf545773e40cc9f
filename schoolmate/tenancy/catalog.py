"""
Tenant catalog access.

The catalog is the system-wide ``tenants`` table.  It is the only place
tenant identity and schema assignment are decided, so everything here
goes through the system-schema session factory and never through a
tenant handle.

Creating a row is a two-phase write:

1. :meth:`TenantCatalog.insert_pending` inserts the row without a schema
   name and returns the ``tenant_number`` PostgreSQL assigned.
2. :meth:`TenantCatalog.assign_schema_name` writes the derived name.

A crash between the two leaves a row with no schema name.  Such rows are
never handed out as tenants; :meth:`TenantCatalog.find_incomplete`
surfaces them for repair.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import insert, or_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from schoolmate.models.catalog import TenantRecord
from schoolmate.tenancy.errors import TenantAlreadyExistsError, TenantNotFoundError
from schoolmate.tenancy.identity import SCHEMA_NAME_RE, SCHEMA_PREFIX

logger = logging.getLogger(__name__)


class TenantCatalog:
    """Reads and writes the tenant catalog.

    Attributes:
        _session_factory: Session factory bound to the system schema.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, tenant_id: uuid.UUID) -> TenantRecord | None:
        async with self._session_factory() as session:
            return await session.get(TenantRecord, tenant_id)

    async def get_by_sub_domain(self, sub_domain: str) -> TenantRecord | None:
        stmt = select(TenantRecord).where(TenantRecord.sub_domain == sub_domain)
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def list_all(self) -> list[TenantRecord]:
        """All catalog rows, complete or not, in provisioning order."""
        stmt = select(TenantRecord).order_by(TenantRecord.tenant_number)
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars())

    async def find_incomplete(self) -> list[TenantRecord]:
        """Rows without a usable schema name.

        Matches rows whose provisioning never got past the first phase and
        rows whose name is not a ``tenant_NNNN`` schema.
        """
        stmt = (
            select(TenantRecord)
            .where(
                or_(
                    TenantRecord.schema_name.is_(None),
                    ~TenantRecord.schema_name.regexp_match(SCHEMA_NAME_RE.pattern),
                )
            )
            .order_by(TenantRecord.tenant_number)
        )
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars())

    async def existing_schemas(self) -> set[str]:
        """Names of the tenant schemas that actually exist in the database."""
        stmt = text(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE schema_name LIKE :prefix"
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt, {"prefix": f"{SCHEMA_PREFIX}%"})
            return set(result.scalars())

    async def insert_pending(self, tenant_id: uuid.UUID, name: str, sub_domain: str) -> int:
        """Insert a row without a schema name.

        Returns:
            The ``tenant_number`` assigned by the database sequence.

        Raises:
            TenantAlreadyExistsError: If ``sub_domain`` is taken.
        """
        stmt = (
            insert(TenantRecord)
            .values(id=tenant_id, name=name, sub_domain=sub_domain, schema_name=None)
            .returning(TenantRecord.tenant_number)
        )
        async with self._session_factory() as session:
            try:
                tenant_number = (await session.execute(stmt)).scalar_one()
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise TenantAlreadyExistsError(sub_domain) from exc
        logger.info("Cataloged tenant %s as #%d (pending schema)", tenant_id, tenant_number)
        return tenant_number

    async def assign_schema_name(self, tenant_id: uuid.UUID, schema_name: str) -> None:
        """Complete the second phase of the catalog write.

        Raises:
            TenantNotFoundError: If the row disappeared.
        """
        stmt = (
            update(TenantRecord)
            .where(TenantRecord.id == tenant_id)
            .values(schema_name=schema_name)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                raise TenantNotFoundError(tenant_id)
            await session.commit()
        logger.info("Assigned schema %s to tenant %s", schema_name, tenant_id)
