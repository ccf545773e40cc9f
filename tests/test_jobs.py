"""Tests for the tenant-scoped repositories and cleanup jobs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from schoolmate.jobs.cleanup import FcmTokenCleanupJob, OtpCleanupJob
from schoolmate.repositories.fcm_tokens import FcmTokenRepository
from schoolmate.repositories.otp import OtpRepository
from schoolmate.tenancy.context import TenantScope, clear
from schoolmate.tenancy.errors import TenantContextError
from schoolmate.tenancy.registry import SchemaConnectionRegistry
from schoolmate.tenancy.sweeper import CrossTenantSweeper

from conftest import FakeHandle, make_identity


@pytest.fixture
def counting_registry():
    return SchemaConnectionRegistry(handle_factory=lambda name: FakeHandle(name, rowcount=3))


def _sql(handle) -> str:
    (stmt,), _ = handle.db.execute.call_args
    return str(stmt)


class TestOtpRepository:
    @pytest.mark.asyncio
    async def test_deletes_in_bound_tenant(self, counting_registry):
        repo = OtpRepository(counting_registry)
        async with TenantScope(make_identity(1)):
            deleted = await repo.cleanup_expired(now=datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert deleted == 3
        handle = counting_registry.get("tenant_0001")
        sql = _sql(handle)
        assert "DELETE FROM otp_codes" in sql
        assert "expires_at <" in sql
        assert "tenant_0002" not in counting_registry

    @pytest.mark.asyncio
    async def test_requires_tenant(self, counting_registry):
        clear()
        with pytest.raises(TenantContextError):
            await OtpRepository(counting_registry).cleanup_expired()

    @pytest.mark.asyncio
    async def test_none_rowcount_is_zero(self):
        def factory(name):
            handle = FakeHandle(name)
            handle.db.execute.return_value.rowcount = None
            return handle

        repo = OtpRepository(SchemaConnectionRegistry(handle_factory=factory))
        async with TenantScope(make_identity(1)):
            assert await repo.cleanup_expired() == 0


class TestFcmTokenRepository:
    @pytest.mark.asyncio
    async def test_deletes_only_inactive_stale_tokens(self, counting_registry):
        repo = FcmTokenRepository(counting_registry)
        async with TenantScope(make_identity(2)):
            deleted = await repo.delete_expired(max_age_days=30)

        assert deleted == 3
        sql = _sql(counting_registry.get("tenant_0002"))
        assert "DELETE FROM fcm_tokens" in sql
        assert "updated_at <" in sql
        assert "is_active IS" in sql


class TestCleanupJobs:
    @pytest.mark.asyncio
    async def test_otp_job_counters(self, counting_registry):
        job = OtpCleanupJob(OtpRepository(counting_registry))
        async with TenantScope(make_identity(1)) as tenant:
            assert await job.run_for_tenant(tenant) == {"deleted": 3}
        assert job.name == "otp-cleanup"

    @pytest.mark.asyncio
    async def test_fcm_job_passes_max_age(self, counting_registry):
        job = FcmTokenCleanupJob(FcmTokenRepository(counting_registry), max_age_days=7)
        async with TenantScope(make_identity(1)) as tenant:
            assert await job.run_for_tenant(tenant) == {"deleted": 3}
        assert job.name == "fcm-token-cleanup"

    @pytest.mark.asyncio
    async def test_otp_sweep_across_tenants(self, catalog, counting_registry):
        for n in (1, 2, 3):
            catalog.add(uuid.UUID(int=n), f"S{n}", f"s{n}")
        job = OtpCleanupJob(OtpRepository(counting_registry))

        report = await CrossTenantSweeper(catalog).run(job)

        assert report.succeeded == 3
        assert report.counters["deleted"] == 9
        assert sorted(counting_registry.schemas()) == ["tenant_0001", "tenant_0002", "tenant_0003"]
