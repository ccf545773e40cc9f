"""Shared fakes: an in-memory tenant catalog and schema handles.

The fakes mirror the public surface of TenantCatalog and SchemaHandle so
the tenancy layer can be exercised without a PostgreSQL server.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from schoolmate.bootstrap import TenancyServices
from schoolmate.models.catalog import TenantRecord
from schoolmate.models.school import TENANT_TABLES
from schoolmate.tenancy.errors import TenantAlreadyExistsError, TenantNotFoundError
from schoolmate.tenancy.identity import TenantIdentity, is_valid_schema_name, schema_name_for
from schoolmate.tenancy.provisioning import TenantProvisioningService
from schoolmate.tenancy.registry import SchemaConnectionRegistry
from schoolmate.tenancy.sweeper import CrossTenantSweeper


def make_identity(number: int = 1, name: str | None = None) -> TenantIdentity:
    return TenantIdentity(
        id=uuid.UUID(int=number),
        name=name or f"School {number}",
        sub_domain=f"school{number}",
        schema_name=schema_name_for(number),
    )


class FakeCatalog:
    """In-memory stand-in for TenantCatalog with a database-like sequence."""

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, TenantRecord] = {}
        self._sequence = 0
        self._lock = asyncio.Lock()
        self.fail_assign = False
        self.fail_list = False
        # Cataloged schema names reported as absent from the database
        self.missing_schemas: set[str] = set()

    def add(
        self,
        tenant_id: uuid.UUID,
        name: str,
        sub_domain: str,
        schema_name: str | None = "auto",
    ) -> TenantRecord:
        """Seed a row directly, bypassing provisioning."""
        self._sequence += 1
        record = TenantRecord(
            id=tenant_id,
            tenant_number=self._sequence,
            name=name,
            sub_domain=sub_domain,
            schema_name=schema_name_for(self._sequence) if schema_name == "auto" else schema_name,
            is_active=True,
        )
        self.records[tenant_id] = record
        return record

    async def get(self, tenant_id):
        return self.records.get(tenant_id)

    async def get_by_sub_domain(self, sub_domain):
        for record in self.records.values():
            if record.sub_domain == sub_domain:
                return record
        return None

    async def list_all(self):
        if self.fail_list:
            raise ConnectionError("catalog unreachable")
        return sorted(self.records.values(), key=lambda r: r.tenant_number)

    async def find_incomplete(self):
        return [r for r in await self.list_all() if not is_valid_schema_name(r.schema_name)]

    async def existing_schemas(self):
        return {
            r.schema_name
            for r in self.records.values()
            if is_valid_schema_name(r.schema_name)
        } - self.missing_schemas

    async def insert_pending(self, tenant_id, name, sub_domain):
        async with self._lock:
            if any(r.sub_domain == sub_domain for r in self.records.values()):
                raise TenantAlreadyExistsError(sub_domain)
            self._sequence += 1
            number = self._sequence
            self.records[tenant_id] = TenantRecord(
                id=tenant_id,
                tenant_number=number,
                name=name,
                sub_domain=sub_domain,
                schema_name=None,
                is_active=True,
            )
        # Let other provisions interleave between the two phases
        await asyncio.sleep(0)
        return number

    async def assign_schema_name(self, tenant_id, schema_name):
        if self.fail_assign:
            raise ConnectionError("connection lost")
        record = self.records.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(tenant_id)
        record.schema_name = schema_name


class FakeHandle:
    """Schema handle whose session is a MagicMock."""

    def __init__(self, schema_name: str, rowcount: int = 0):
        self.schema_name = schema_name
        self.created = 0
        self.fail_create = False
        self.db = MagicMock()
        self.db.execute = AsyncMock(return_value=MagicMock(rowcount=rowcount))

    @asynccontextmanager
    async def session(self):
        yield self.db

    async def create_schema(self):
        if self.fail_create:
            raise ConnectionError("database went away")
        self.created += 1
        return list(TENANT_TABLES)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def registry() -> SchemaConnectionRegistry:
    return SchemaConnectionRegistry(handle_factory=FakeHandle)


@pytest.fixture
def provisioning(catalog, registry) -> TenantProvisioningService:
    return TenantProvisioningService(catalog, registry)


@pytest.fixture
def services(catalog, registry, provisioning) -> TenancyServices:
    return TenancyServices(
        catalog=catalog,
        registry=registry,
        provisioning=provisioning,
        sweeper=CrossTenantSweeper(catalog),
    )
