"""Wiring of the tenancy services shared by the API and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncEngine

from schoolmate.config.settings import Settings
from schoolmate.db import create_engine, create_session_factory, schema_bound_engine
from schoolmate.jobs.cleanup import FcmTokenCleanupJob, OtpCleanupJob
from schoolmate.repositories.fcm_tokens import FcmTokenRepository
from schoolmate.repositories.otp import OtpRepository
from schoolmate.tenancy.catalog import TenantCatalog
from schoolmate.tenancy.provisioning import TenantProvisioningService
from schoolmate.tenancy.registry import SchemaConnectionRegistry
from schoolmate.tenancy.sweeper import CrossTenantSweeper, PeriodicSweep

logger = logging.getLogger(__name__)


@dataclass
class TenancyServices:
    catalog: TenantCatalog
    registry: SchemaConnectionRegistry
    provisioning: TenantProvisioningService
    sweeper: CrossTenantSweeper
    sweeps: dict[str, PeriodicSweep] = field(default_factory=dict)
    engine: AsyncEngine | None = None

    def start_sweeps(self) -> None:
        for sweep in self.sweeps.values():
            sweep.start()
        logger.info("Started %d background sweeps", len(self.sweeps))

    async def stop_sweeps(self) -> None:
        for sweep in self.sweeps.values():
            await sweep.stop()

    async def aclose(self) -> None:
        await self.stop_sweeps()
        if self.engine is not None:
            await self.engine.dispose()


def build_sweeps(
    settings: Settings,
    sweeper: CrossTenantSweeper,
    registry: SchemaConnectionRegistry,
) -> dict[str, PeriodicSweep]:
    otp = OtpCleanupJob(OtpRepository(registry))
    fcm = FcmTokenCleanupJob(
        FcmTokenRepository(registry), max_age_days=settings.FCM_TOKEN_MAX_AGE_DAYS
    )
    return {
        "otp": PeriodicSweep(
            sweeper,
            otp,
            interval=settings.OTP_CLEANUP_INTERVAL_SECONDS,
            retry_delay=settings.SWEEP_RETRY_SECONDS,
        ),
        "fcm": PeriodicSweep(
            sweeper,
            fcm,
            interval=settings.FCM_CLEANUP_INTERVAL_SECONDS,
            retry_delay=settings.SWEEP_RETRY_SECONDS,
        ),
    }


def build_services(settings: Settings) -> TenancyServices:
    """Create the engine and every tenancy service on top of it.

    No connection is opened here; the first query does that.
    """
    engine = create_engine(settings)
    system_engine = schema_bound_engine(engine, settings.SYSTEM_SCHEMA)
    catalog = TenantCatalog(create_session_factory(system_engine))
    registry = SchemaConnectionRegistry(engine, max_size=settings.TENANT_REGISTRY_MAX_SCHEMAS)
    sweeper = CrossTenantSweeper(catalog, concurrency=settings.SWEEP_CONCURRENCY)
    return TenancyServices(
        catalog=catalog,
        registry=registry,
        provisioning=TenantProvisioningService(catalog, registry),
        sweeper=sweeper,
        sweeps=build_sweeps(settings, sweeper, registry),
        engine=engine,
    )
