"""Tests for schoolmate.tenancy.provisioning."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from schoolmate.models.school import TENANT_TABLES
from schoolmate.tenancy.errors import (
    ProvisioningInconsistencyError,
    TenantAlreadyExistsError,
    TenantNotFoundError,
)


class TestCreateTenant:
    @pytest.mark.asyncio
    async def test_first_tenant_gets_first_schema(self, provisioning, catalog, registry):
        identity = await provisioning.create_tenant("Green Valley High", "greenvalley")

        assert identity.schema_name == "tenant_0001"
        assert identity.name == "Green Valley High"
        assert identity.sub_domain == "greenvalley"

        record = catalog.records[identity.id]
        assert record.schema_name == "tenant_0001"
        assert record.tenant_number == 1
        assert registry.get("tenant_0001").created == 1

    @pytest.mark.asyncio
    async def test_schema_name_follows_sequence(self, provisioning):
        await provisioning.create_tenant("A", "a")
        second = await provisioning.create_tenant("B", "b")
        assert second.schema_name == "tenant_0002"

    @pytest.mark.asyncio
    async def test_concurrent_provisions_get_distinct_schemas(self, provisioning, catalog):
        identities = await asyncio.gather(
            *(provisioning.create_tenant(f"School {n}", f"school{n}") for n in range(10))
        )

        names = {i.schema_name for i in identities}
        assert len(names) == 10
        assert names == {f"tenant_{n:04d}" for n in range(1, 11)}
        assert not await catalog.find_incomplete()

    @pytest.mark.asyncio
    async def test_normalizes_input(self, provisioning):
        identity = await provisioning.create_tenant("  Hill School ", " HillSchool ")
        assert identity.name == "Hill School"
        assert identity.sub_domain == "hillschool"

    @pytest.mark.asyncio
    async def test_duplicate_sub_domain(self, provisioning, catalog):
        await provisioning.create_tenant("A", "same")
        with pytest.raises(TenantAlreadyExistsError):
            await provisioning.create_tenant("B", "same")
        assert len(catalog.records) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,sub_domain",
        [("", "ok"), ("   ", "ok"), ("x" * 101, "ok"), ("ok", ""), ("ok", "bad_label"), ("ok", "-lead")],
    )
    async def test_invalid_input(self, provisioning, catalog, name, sub_domain):
        with pytest.raises(ValueError):
            await provisioning.create_tenant(name, sub_domain)
        assert catalog.records == {}

    @pytest.mark.asyncio
    async def test_schema_materialization_failure(self, catalog):
        from schoolmate.tenancy.provisioning import TenantProvisioningService
        from schoolmate.tenancy.registry import SchemaConnectionRegistry

        from conftest import FakeHandle

        def failing(schema_name):
            handle = FakeHandle(schema_name)
            handle.fail_create = True
            return handle

        service = TenantProvisioningService(
            catalog, SchemaConnectionRegistry(handle_factory=failing)
        )
        with pytest.raises(ConnectionError):
            await service.create_tenant("A", "a")

        # The name is assigned, so a repair only has to create the schema
        (record,) = catalog.records.values()
        assert record.schema_name == "tenant_0001"


class TestInterruptedProvisioning:
    @pytest.mark.asyncio
    async def test_crash_between_phases_leaves_incomplete_row(self, provisioning, catalog):
        catalog.fail_assign = True
        with pytest.raises(ConnectionError):
            await provisioning.create_tenant("A", "a")

        incomplete = await provisioning.check_consistency()
        assert len(incomplete) == 1
        assert incomplete[0].schema_name is None

    @pytest.mark.asyncio
    async def test_incomplete_rows_are_not_tenants(self, provisioning, catalog):
        catalog.add(uuid.UUID(int=1), "Done", "done")
        pending = catalog.add(uuid.UUID(int=2), "Pending", "pending", schema_name=None)

        tenants = await provisioning.get_all_tenants()
        assert [t.sub_domain for t in tenants] == ["done"]

        with pytest.raises(ProvisioningInconsistencyError):
            await provisioning.get_tenant(pending.id)

    @pytest.mark.asyncio
    async def test_resume_assigns_name_and_creates_schema(self, provisioning, catalog, registry):
        catalog.fail_assign = True
        with pytest.raises(ConnectionError):
            await provisioning.create_tenant("A", "a")
        catalog.fail_assign = False
        (record,) = catalog.records.values()

        identity = await provisioning.resume_provisioning(record.id)

        assert identity.schema_name == "tenant_0001"
        assert record.schema_name == "tenant_0001"
        assert registry.get("tenant_0001").created == 1
        assert await provisioning.check_consistency() == []

    @pytest.mark.asyncio
    async def test_resume_on_complete_tenant_keeps_name(self, provisioning, registry):
        identity = await provisioning.create_tenant("A", "a")
        again = await provisioning.resume_provisioning(identity.id)
        assert again == identity
        assert registry.get("tenant_0001").created == 2

    @pytest.mark.asyncio
    async def test_resume_unknown_tenant(self, provisioning):
        with pytest.raises(TenantNotFoundError):
            await provisioning.resume_provisioning(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_non_tenant_schema_name_is_inconsistent(self, provisioning, catalog):
        catalog.add(uuid.UUID(int=1), "A", "a")
        legacy = catalog.add(uuid.UUID(int=2), "Legacy", "legacy", schema_name="tenant_legacy")

        tenants = await provisioning.get_all_tenants()
        assert [t.schema_name for t in tenants] == ["tenant_0001"]

        incomplete = await provisioning.check_consistency()
        assert [r.id for r in incomplete] == [legacy.id]

        with pytest.raises(ProvisioningInconsistencyError):
            await provisioning.get_tenant_by_sub_domain("legacy")

    @pytest.mark.asyncio
    async def test_resume_refuses_to_rename_non_tenant_schema(self, provisioning, catalog, registry):
        legacy = catalog.add(uuid.UUID(int=1), "Legacy", "legacy", schema_name="tenant_legacy")

        with pytest.raises(ProvisioningInconsistencyError):
            await provisioning.resume_provisioning(legacy.id)

        assert legacy.schema_name == "tenant_legacy"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_missing_schema_is_reported_and_repaired(self, provisioning, catalog, registry):
        catalog.add(uuid.UUID(int=1), "A", "a")
        dangling = catalog.add(uuid.UUID(int=2), "B", "b")
        catalog.missing_schemas.add("tenant_0002")

        incomplete = await provisioning.check_consistency()
        assert [r.id for r in incomplete] == [dangling.id]

        identity = await provisioning.resume_provisioning(dangling.id)
        assert identity.schema_name == "tenant_0002"
        assert registry.get("tenant_0002").created == 1


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_tenant(self, provisioning):
        created = await provisioning.create_tenant("A", "a")
        assert await provisioning.get_tenant(created.id) == created

    @pytest.mark.asyncio
    async def test_get_tenant_missing(self, provisioning):
        with pytest.raises(TenantNotFoundError):
            await provisioning.get_tenant(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_get_by_sub_domain_is_case_insensitive(self, provisioning):
        created = await provisioning.create_tenant("A", "alpha")
        assert await provisioning.get_tenant_by_sub_domain("ALPHA") == created

    @pytest.mark.asyncio
    async def test_get_by_sub_domain_missing(self, provisioning):
        with pytest.raises(TenantNotFoundError) as exc_info:
            await provisioning.get_tenant_by_sub_domain("nowhere")
        assert exc_info.value.key == "nowhere"

    @pytest.mark.asyncio
    async def test_get_all_in_provisioning_order(self, provisioning):
        for n in range(3):
            await provisioning.create_tenant(f"S{n}", f"s{n}")
        tenants = await provisioning.get_all_tenants()
        assert [t.schema_name for t in tenants] == ["tenant_0001", "tenant_0002", "tenant_0003"]


def test_tenant_tables_cover_school_domain():
    for table in ("users", "otp_codes", "fcm_tokens", "attendance", "exam_results"):
        assert table in TENANT_TABLES
