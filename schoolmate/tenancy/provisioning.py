"""
Tenant provisioning.

Creating a tenant allocates its identity, assigns its schema name from the
catalog sequence, and materializes the schema with the full tenant table
set.  The schema name depends on a value only the database can hand out,
so the catalog write is split in two (insert, then update); see
:mod:`schoolmate.tenancy.catalog`.

Interrupted provisioning is never repaired automatically.  Incomplete
rows are reported by :meth:`TenantProvisioningService.check_consistency`
and finished by an operator through
:meth:`TenantProvisioningService.resume_provisioning`
(``schoolmate tenants check`` / ``schoolmate tenants repair``).

Example:
    service = TenantProvisioningService(catalog, registry)
    identity = await service.create_tenant("Green Valley High", "greenvalley")
    identity.schema_name   # "tenant_0001" on a fresh catalog
"""

from __future__ import annotations

import logging
import uuid

from schoolmate.models.catalog import TenantRecord
from schoolmate.tenancy.catalog import TenantCatalog
from schoolmate.tenancy.errors import ProvisioningInconsistencyError, TenantNotFoundError
from schoolmate.tenancy.identity import (
    SUB_DOMAIN_RE,
    TenantIdentity,
    is_valid_schema_name,
    partition_records,
    schema_name_for,
)
from schoolmate.tenancy.registry import SchemaConnectionRegistry

logger = logging.getLogger(__name__)


class TenantProvisioningService:
    """Creates tenants and answers catalog projections.

    Attributes:
        _catalog: The tenant catalog.
        _registry: Registry used to reach the new tenant's schema.
    """

    def __init__(self, catalog: TenantCatalog, registry: SchemaConnectionRegistry):
        self._catalog = catalog
        self._registry = registry

    @staticmethod
    def _validate(name: str, sub_domain: str) -> tuple[str, str]:
        name = name.strip()
        sub_domain = sub_domain.strip().lower()
        if not name:
            raise ValueError("Tenant name cannot be empty")
        if len(name) > 100:
            raise ValueError("Tenant name cannot exceed 100 characters")
        if not SUB_DOMAIN_RE.match(sub_domain):
            raise ValueError(
                f"Invalid sub-domain {sub_domain!r}: use lowercase letters, "
                "digits and inner hyphens (max 63 characters)"
            )
        return name, sub_domain

    async def create_tenant(self, name: str, sub_domain: str) -> TenantIdentity:
        """Provision a new tenant.

        Args:
            name: Display name of the school.
            sub_domain: Unique routing token.

        Returns:
            The new tenant's identity.

        Raises:
            ValueError: If the name or sub-domain is invalid.
            TenantAlreadyExistsError: If the sub-domain is taken.
            SchemaRegistryError: If the schema handle cannot be built.
        """
        name, sub_domain = self._validate(name, sub_domain)
        tenant_id = uuid.uuid4()

        tenant_number = await self._catalog.insert_pending(tenant_id, name, sub_domain)
        schema_name = schema_name_for(tenant_number)
        await self._catalog.assign_schema_name(tenant_id, schema_name)

        await self._materialize(schema_name)

        identity = TenantIdentity(
            id=tenant_id, name=name, sub_domain=sub_domain, schema_name=schema_name
        )
        logger.info("Provisioned tenant %s", identity)
        return identity

    async def _materialize(self, schema_name: str) -> None:
        handle = self._registry.get(schema_name)
        try:
            await handle.create_schema()
        except Exception:
            logger.error(
                "Schema %s is cataloged but could not be materialized; "
                "run `schoolmate tenants repair` once the database is reachable",
                schema_name,
            )
            raise

    async def resume_provisioning(self, tenant_id: uuid.UUID) -> TenantIdentity:
        """Finish provisioning for a tenant whose creation was interrupted.

        Safe to run on a fully provisioned tenant: the schema name is kept
        and schema creation is idempotent.

        Raises:
            TenantNotFoundError: If no catalog row has this id.
            ProvisioningInconsistencyError: If the row carries a schema name
                that is not a tenant schema. Renaming a schema that may hold
                data is left to the operator.
        """
        record = await self._catalog.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(tenant_id)

        schema_name = record.schema_name
        if not schema_name:
            schema_name = schema_name_for(record.tenant_number)
            logger.warning(
                "Completing catalog write for tenant %s: assigning %s",
                tenant_id,
                schema_name,
            )
            await self._catalog.assign_schema_name(tenant_id, schema_name)
        elif not is_valid_schema_name(schema_name):
            raise ProvisioningInconsistencyError(record.id, record.tenant_number, schema_name)

        await self._materialize(schema_name)
        return TenantIdentity(
            id=record.id,
            name=record.name,
            sub_domain=record.sub_domain,
            schema_name=schema_name,
        )

    async def check_consistency(self) -> list[TenantRecord]:
        """Catalog rows that cannot be served as tenants.

        That covers rows without a schema name, rows whose schema name is
        not a tenant schema, and rows whose schema was never created in the
        database (a crash between the catalog write and schema creation).
        """
        inconsistent = await self._catalog.find_incomplete()
        for record in inconsistent:
            logger.warning(
                "Tenant %s (#%s, %r) has unusable schema name %r",
                record.id,
                record.tenant_number,
                record.sub_domain,
                record.schema_name,
            )

        existing = await self._catalog.existing_schemas()
        for record in await self._catalog.list_all():
            name = record.schema_name
            if is_valid_schema_name(name) and name not in existing:
                logger.warning(
                    "Tenant %s (#%s) is cataloged as %s but the schema does not exist",
                    record.id,
                    record.tenant_number,
                    record.schema_name,
                )
                inconsistent.append(record)
        return inconsistent

    async def get_all_tenants(self) -> list[TenantIdentity]:
        """Every fully provisioned tenant, in provisioning order.

        Incomplete rows and rows with a non-tenant schema name are skipped
        and logged, never returned.
        """
        tenants, _ = partition_records(await self._catalog.list_all())
        return tenants

    async def get_tenant(self, tenant_id: uuid.UUID) -> TenantIdentity:
        """Look up a tenant by id.

        Raises:
            TenantNotFoundError: If no row has this id.
            ProvisioningInconsistencyError: If the row is incomplete.
        """
        record = await self._catalog.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(tenant_id)
        return TenantIdentity.from_record(record)

    async def get_tenant_by_sub_domain(self, sub_domain: str) -> TenantIdentity:
        """Look up a tenant by its routing token.

        Raises:
            TenantNotFoundError: If no row has this sub-domain.
            ProvisioningInconsistencyError: If the row is incomplete.
        """
        record = await self._catalog.get_by_sub_domain(sub_domain.strip().lower())
        if record is None:
            raise TenantNotFoundError(sub_domain)
        return TenantIdentity.from_record(record)
