"""Cleanup jobs for expired one-time codes and stale push tokens."""

from __future__ import annotations

from schoolmate.repositories.fcm_tokens import FcmTokenRepository
from schoolmate.repositories.otp import OtpRepository
from schoolmate.tenancy.identity import TenantIdentity


class OtpCleanupJob:
    """Deletes expired one-time codes. Counter: ``deleted``."""

    name = "otp-cleanup"

    def __init__(self, repository: OtpRepository):
        self._repository = repository

    async def run_for_tenant(self, tenant: TenantIdentity) -> dict[str, int]:
        return {"deleted": await self._repository.cleanup_expired()}


class FcmTokenCleanupJob:
    """Deletes inactive push tokens older than ``max_age_days``. Counter: ``deleted``."""

    name = "fcm-token-cleanup"

    def __init__(self, repository: FcmTokenRepository, max_age_days: int = 30):
        self._repository = repository
        self.max_age_days = max_age_days

    async def run_for_tenant(self, tenant: TenantIdentity) -> dict[str, int]:
        deleted = await self._repository.delete_expired(max_age_days=self.max_age_days)
        return {"deleted": deleted}
