"""Tests for schoolmate.tenancy.sweeper."""

from __future__ import annotations

import asyncio
import uuid
from unittest.mock import patch

import pytest

from schoolmate.tenancy.context import TenantScope, current
from schoolmate.tenancy.sweeper import CrossTenantSweeper, PeriodicSweep, SweepReport

from conftest import make_identity


class RecordingJob:
    """Records the bound tenant per iteration; fails for chosen schemas."""

    name = "recording"

    def __init__(self, fail_for=(), delay=0.0):
        self.fail_for = set(fail_for)
        self.delay = delay
        self.seen = []
        self.active = 0
        self.max_active = 0

    async def run_for_tenant(self, tenant):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            self.seen.append((tenant.schema_name, current()))
            if tenant.schema_name in self.fail_for:
                raise RuntimeError(f"failure in {tenant.schema_name}")
            return {"deleted": 2}
        finally:
            self.active -= 1


@pytest.fixture
def three_tenants(catalog):
    for n, label in enumerate(("a", "b", "c"), start=1):
        catalog.add(uuid.UUID(int=n), f"School {label.upper()}", label)
    return catalog


class TestCrossTenantSweeper:
    def test_concurrency_must_be_positive(self, catalog):
        with pytest.raises(ValueError):
            CrossTenantSweeper(catalog, concurrency=0)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, three_tenants):
        job = RecordingJob(fail_for={"tenant_0002"})
        report = await CrossTenantSweeper(three_tenants).run(job)

        assert report.processed == 3
        assert report.succeeded == 2
        assert report.failed == 1
        assert report.counters["deleted"] == 4
        assert [f.schema_name for f in report.failures] == ["tenant_0002"]
        assert "RuntimeError" in report.failures[0].error
        assert report.finished_at is not None

    @pytest.mark.asyncio
    async def test_each_iteration_sees_only_its_tenant(self, three_tenants):
        job = RecordingJob()
        await CrossTenantSweeper(three_tenants).run(job)

        for schema_name, bound in job.seen:
            assert bound is not None
            assert bound.schema_name == schema_name

    @pytest.mark.asyncio
    async def test_caller_binding_not_inherited_or_changed(self, three_tenants):
        caller = make_identity(99)
        job = RecordingJob()
        async with TenantScope(caller):
            await CrossTenantSweeper(three_tenants).run(job)
            assert current() is caller

        assert all(bound != caller for _, bound in job.seen)

    @pytest.mark.asyncio
    async def test_incomplete_rows_skipped(self, three_tenants):
        three_tenants.add(uuid.uuid4(), "Pending", "pending", schema_name=None)
        job = RecordingJob()
        report = await CrossTenantSweeper(three_tenants).run(job)

        assert report.processed == 3
        assert report.skipped == 1
        assert len(job.seen) == 3

    @pytest.mark.asyncio
    async def test_row_with_non_tenant_schema_name_is_skipped(self, catalog):
        catalog.add(uuid.UUID(int=1), "A", "a")
        catalog.add(uuid.UUID(int=2), "Legacy", "legacy", schema_name="tenant_legacy")
        catalog.add(uuid.UUID(int=3), "C", "c")
        job = RecordingJob()

        report = await CrossTenantSweeper(catalog).run(job)

        assert sorted(name for name, _ in job.seen) == ["tenant_0001", "tenant_0003"]
        assert report.processed == 2
        assert report.succeeded == 2
        assert report.skipped == 1
        assert report.failed == 0

    @pytest.mark.asyncio
    async def test_sequential_by_default(self, three_tenants):
        job = RecordingJob(delay=0.01)
        await CrossTenantSweeper(three_tenants).run(job)
        assert job.max_active == 1

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, three_tenants):
        three_tenants.add(uuid.uuid4(), "D", "d")
        job = RecordingJob(delay=0.01)
        await CrossTenantSweeper(three_tenants, concurrency=2).run(job)
        assert job.max_active == 2

    @pytest.mark.asyncio
    async def test_empty_catalog(self, catalog):
        report = await CrossTenantSweeper(catalog).run(RecordingJob())
        assert report.processed == 0
        assert report.succeeded == 0

    @pytest.mark.asyncio
    async def test_catalog_failure_propagates(self, three_tenants):
        three_tenants.fail_list = True
        with pytest.raises(ConnectionError):
            await CrossTenantSweeper(three_tenants).run(RecordingJob())


class TestSweepReport:
    def test_to_dict(self):
        report = SweepReport(job_name="otp-cleanup", processed=1, succeeded=1)
        report.counters["deleted"] = 5
        data = report.to_dict()
        assert data["job_name"] == "otp-cleanup"
        assert data["counters"] == {"deleted": 5}
        assert data["finished_at"] is None
        assert report.duration_seconds is None


class TestPeriodicSweep:
    @pytest.mark.asyncio
    async def test_run_once_keeps_report(self, three_tenants):
        sweep = PeriodicSweep(CrossTenantSweeper(three_tenants), RecordingJob(), interval=60)
        report = await sweep.run_once()
        assert sweep.last_report is report

    @pytest.mark.asyncio
    async def test_loop_runs_until_stopped(self, three_tenants):
        job = RecordingJob()
        sweep = PeriodicSweep(CrossTenantSweeper(three_tenants), job, interval=0.01)

        sweep.start()
        assert sweep.running
        await asyncio.sleep(0.05)
        await sweep.stop()

        assert not sweep.running
        assert len(job.seen) >= 6
        assert sweep.last_report.succeeded == 3

    @pytest.mark.asyncio
    async def test_whole_sweep_failure_uses_retry_delay(self, three_tenants):
        three_tenants.fail_list = True
        sweep = PeriodicSweep(
            CrossTenantSweeper(three_tenants), RecordingJob(), interval=0.0, retry_delay=60
        )
        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay):
            sleeps.append(delay)
            await real_sleep(0.001)

        with patch("schoolmate.tenancy.sweeper.asyncio.sleep", fake_sleep):
            sweep.start()
            await real_sleep(0.01)
            await sweep.stop()

        assert sleeps
        assert all(d == 60 for d in sleeps)
        assert sweep.last_report is None

    @pytest.mark.asyncio
    async def test_loop_does_not_inherit_starter_tenant(self, three_tenants):
        job = RecordingJob()
        sweep = PeriodicSweep(CrossTenantSweeper(three_tenants), job, interval=60)
        async with TenantScope(make_identity(99)):
            sweep.start()
        await asyncio.sleep(0.01)
        await sweep.stop()
        assert {bound.schema_name for _, bound in job.seen} == {
            "tenant_0001", "tenant_0002", "tenant_0003"
        }
