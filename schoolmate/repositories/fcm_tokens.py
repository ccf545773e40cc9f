"""Push-notification device tokens."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import delete

from schoolmate.models.school import FcmToken
from schoolmate.repositories.base import TenantRepository


class FcmTokenRepository(TenantRepository):
    async def delete_expired(self, max_age_days: int = 30, now: datetime | None = None) -> int:
        """Delete inactive tokens not updated within ``max_age_days``.

        Returns:
            Number of tokens removed.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=max_age_days)
        stmt = delete(FcmToken).where(
            FcmToken.updated_at < cutoff,
            FcmToken.is_active.is_(False),
        )
        async with self.session() as session:
            result = await session.execute(stmt)
            return result.rowcount or 0
