"""Base class for repositories that operate on the current tenant's schema."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from schoolmate.tenancy.registry import SchemaConnectionRegistry, tenant_session


class TenantRepository:
    def __init__(self, registry: SchemaConnectionRegistry):
        self._registry = registry

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Transactional session on the bound tenant's schema.

        Raises:
            TenantContextError: If no tenant is bound.
        """
        async with tenant_session(self._registry) as session:
            yield session
