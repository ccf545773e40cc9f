"""One-time codes."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import delete

from schoolmate.models.school import OtpCode
from schoolmate.repositories.base import TenantRepository


class OtpRepository(TenantRepository):
    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Delete codes that expired before ``now``; returns the number removed."""
        now = now or datetime.now(timezone.utc)
        async with self.session() as session:
            result = await session.execute(delete(OtpCode).where(OtpCode.expires_at < now))
            return result.rowcount or 0
