"""
Schema-per-tenant isolation for Schoolmate.

Each school (tenant) keeps its data in its own PostgreSQL schema.  This
package provides:

- TenantIdentity: immutable description of one tenant
- TenantCatalog: the system-wide table of tenants and schema assignments
- SchemaConnectionRegistry: cached data handles bound to one schema
- Tenant context (bind/current/clear, TenantScope): which tenant the
  current flow is working for
- TenantResolutionMiddleware: resolves and binds the tenant per request
- TenantProvisioningService: creates tenants and their schemas
- CrossTenantSweeper / PeriodicSweep: run background work once per tenant

Example:
    from schoolmate.tenancy import TenantScope, current, SchemaConnectionRegistry

    async with TenantScope(identity):
        async with registry.current().session() as session:
            ...
"""

from schoolmate.tenancy.catalog import TenantCatalog
from schoolmate.tenancy.context import (
    TenantScope,
    bind,
    clear,
    current,
    require_tenant,
    reset,
    run_in_thread,
    spawn_task,
    tenant_required,
)
from schoolmate.tenancy.errors import (
    ProvisioningInconsistencyError,
    SchemaRegistryError,
    TenancyError,
    TenantAlreadyExistsError,
    TenantContextError,
    TenantNotFoundError,
)
from schoolmate.tenancy.identity import TenantIdentity, schema_name_for
from schoolmate.tenancy.provisioning import TenantProvisioningService
from schoolmate.tenancy.registry import (
    SchemaConnectionRegistry,
    SchemaHandle,
    tenant_session,
)
from schoolmate.tenancy.resolution import TenantResolutionMiddleware
from schoolmate.tenancy.sweeper import (
    CrossTenantSweeper,
    PeriodicSweep,
    SweepReport,
    TenantJob,
)

__all__ = [
    # Identity
    "TenantIdentity",
    "schema_name_for",
    # Catalog & storage
    "TenantCatalog",
    "SchemaConnectionRegistry",
    "SchemaHandle",
    "tenant_session",
    # Context
    "TenantScope",
    "bind",
    "clear",
    "current",
    "require_tenant",
    "reset",
    "run_in_thread",
    "spawn_task",
    "tenant_required",
    # Request resolution
    "TenantResolutionMiddleware",
    # Provisioning
    "TenantProvisioningService",
    # Sweeps
    "CrossTenantSweeper",
    "PeriodicSweep",
    "SweepReport",
    "TenantJob",
    # Errors
    "TenancyError",
    "TenantNotFoundError",
    "TenantContextError",
    "TenantAlreadyExistsError",
    "ProvisioningInconsistencyError",
    "SchemaRegistryError",
]
