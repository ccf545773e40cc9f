"""
Cross-tenant sweeps.

Recurring background work (OTP cleanup, push-token cleanup, digests)
runs once per tenant through :class:`CrossTenantSweeper`:

1. Enumerate tenants from the catalog.  If that fails the whole sweep
   fails, and :class:`PeriodicSweep` retries after a cooldown.
2. Visit each tenant in its own fresh context with that tenant bound,
   one at a time or with bounded concurrency.
3. Catch and record each tenant's failure; carry on with the next one.
4. Return a :class:`SweepReport` with processed/succeeded/failed counts
   and the summed per-job counters.

Example:
    class OtpCleanupJob:
        name = "otp-cleanup"

        async def run_for_tenant(self, tenant):
            return {"deleted": await repo.cleanup_expired()}

    sweeper = CrossTenantSweeper(catalog, concurrency=4)
    report = await sweeper.run(OtpCleanupJob())
    report.succeeded, report.failed, report.counters["deleted"]
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from schoolmate.tenancy.catalog import TenantCatalog
from schoolmate.tenancy.context import spawn_task
from schoolmate.tenancy.identity import TenantIdentity, partition_records

logger = logging.getLogger(__name__)


class TenantJob(Protocol):
    """Work performed once per tenant.

    ``run_for_tenant`` runs with ``tenant`` already bound in the tenant
    context, so tenant-scoped repositories work unchanged.  It may return
    counters (e.g. ``{"deleted": 3}``) that the sweep sums up.
    """

    name: str

    async def run_for_tenant(self, tenant: TenantIdentity) -> Mapping[str, int] | None: ...


@dataclass
class TenantFailure:
    """One tenant's failed iteration."""

    tenant_id: uuid.UUID
    schema_name: str
    error: str


@dataclass
class SweepReport:
    """Aggregate outcome of one sweep.

    Attributes:
        job_name: Name of the job that ran.
        processed: Tenants visited.
        succeeded: Tenants whose iteration completed.
        failed: Tenants whose iteration raised.
        skipped: Catalog rows not visited because they have no usable
            schema name.
        counters: Per-job counters summed over successful tenants.
        failures: Details of each failed tenant.
    """

    job_name: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    counters: Counter[str] = field(default_factory=Counter)
    failures: list[TenantFailure] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_name": self.job_name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "counters": dict(self.counters),
            "failures": [
                {"tenant_id": str(f.tenant_id), "schema_name": f.schema_name, "error": f.error}
                for f in self.failures
            ],
        }


@dataclass
class _Outcome:
    tenant: TenantIdentity
    counters: Mapping[str, int] | None = None
    error: BaseException | None = None


class CrossTenantSweeper:
    """Runs a job once for every provisioned tenant.

    Attributes:
        concurrency: Maximum number of tenants processed at once.
    """

    def __init__(self, catalog: TenantCatalog, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._catalog = catalog
        self.concurrency = concurrency

    async def tenants(self, report: SweepReport | None = None) -> list[TenantIdentity]:
        """Provisioned tenants from the catalog; unusable rows are skipped."""
        tenants, unusable = partition_records(await self._catalog.list_all())
        if report is not None:
            report.skipped += len(unusable)
        return tenants

    async def run(self, job: TenantJob) -> SweepReport:
        """Run ``job`` for every tenant.

        Raises:
            Exception: Only if the catalog cannot be read. Per-tenant
                failures are recorded in the report instead.
        """
        report = SweepReport(job_name=job.name)
        tenants = await self.tenants(report)
        logger.info("Starting %s for %d tenants", job.name, len(tenants))

        semaphore = asyncio.Semaphore(self.concurrency)

        async def visit(tenant: TenantIdentity) -> _Outcome:
            async with semaphore:
                # Each tenant gets a fresh context with only itself bound
                task = spawn_task(
                    self._run_one(job, tenant),
                    tenant=tenant,
                    name=f"{job.name}:{tenant.schema_name}",
                )
                return await task

        outcomes = await asyncio.gather(*(visit(tenant) for tenant in tenants))

        for outcome in outcomes:
            report.processed += 1
            if outcome.error is None:
                report.succeeded += 1
                report.counters.update(outcome.counters or {})
            else:
                report.failed += 1
                report.failures.append(
                    TenantFailure(
                        tenant_id=outcome.tenant.id,
                        schema_name=outcome.tenant.schema_name,
                        error=f"{type(outcome.error).__name__}: {outcome.error}",
                    )
                )

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "%s completed: %d succeeded, %d failed, %d skipped, counters=%s",
            job.name,
            report.succeeded,
            report.failed,
            report.skipped,
            dict(report.counters),
        )
        return report

    @staticmethod
    async def _run_one(job: TenantJob, tenant: TenantIdentity) -> _Outcome:
        try:
            counters = await job.run_for_tenant(tenant)
        except Exception as exc:
            logger.exception("%s failed for tenant %s", job.name, tenant)
            return _Outcome(tenant=tenant, error=exc)
        logger.info("%s for tenant %s: %s", job.name, tenant, dict(counters or {}))
        return _Outcome(tenant=tenant, counters=counters)


class PeriodicSweep:
    """Runs a sweep on a fixed interval in the background.

    A sweep that fails as a whole (catalog unreachable) is retried after
    ``retry_delay`` instead of ``interval``.  The loop task starts from an
    empty context, so it never inherits a tenant from whoever started it.

    Attributes:
        job: The job to run.
        interval: Seconds between successful sweeps.
        retry_delay: Seconds to wait after a failed sweep.
        last_report: Report of the most recent successful sweep.
    """

    def __init__(
        self,
        sweeper: CrossTenantSweeper,
        job: TenantJob,
        interval: float,
        retry_delay: float = 3600.0,
    ):
        self.sweeper = sweeper
        self.job = job
        self.interval = interval
        self.retry_delay = retry_delay
        self.last_report: SweepReport | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = spawn_task(self._loop(), name=f"sweep:{self.job.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> SweepReport:
        report = await self.sweeper.run(self.job)
        self.last_report = report
        return report

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
                delay = self.interval
            except Exception:
                logger.exception(
                    "%s sweep failed; retrying in %.0fs", self.job.name, self.retry_delay
                )
                delay = self.retry_delay
            await asyncio.sleep(delay)
