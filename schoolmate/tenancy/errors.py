"""Exceptions raised by the tenancy layer."""

from __future__ import annotations

import uuid


class TenancyError(Exception):
    """Base class for tenancy failures."""


class TenantNotFoundError(TenancyError):
    """No usable tenant matches the requested id or sub-domain."""

    def __init__(self, key: uuid.UUID | str | None = None):
        self.key = key
        super().__init__("Tenant not found" if key is None else f"Tenant not found: {key}")


class TenantContextError(TenancyError):
    """Tenant-scoped code ran without a bound tenant."""


class TenantAlreadyExistsError(TenancyError):
    """A tenant with the same sub-domain is already cataloged."""

    def __init__(self, sub_domain: str):
        self.sub_domain = sub_domain
        super().__init__(f"Sub-domain already taken: {sub_domain!r}")


class ProvisioningInconsistencyError(TenancyError):
    """A catalog row has no usable schema name.

    Either provisioning was interrupted before the name was written, or
    the row carries a name that is not a ``tenant_NNNN`` schema.
    """

    def __init__(
        self,
        tenant_id: uuid.UUID,
        tenant_number: int | None = None,
        schema_name: str | None = None,
    ):
        self.tenant_id = tenant_id
        self.tenant_number = tenant_number
        self.schema_name = schema_name
        if schema_name:
            detail = f"has invalid schema name {schema_name!r}"
        else:
            detail = "has no schema name; provisioning was interrupted"
        super().__init__(f"Tenant {tenant_id} (#{tenant_number}) {detail}")


class SchemaRegistryError(TenancyError):
    """A schema-scoped handle could not be built."""
