"""Tenant catalog model.

The catalog is the single system-wide table listing every tenant and the
physical schema assigned to it.  It lives in the system schema and is the
source of truth for both identity and schema-name assignment.

Note
----
``schema_name`` is nullable on purpose.  Provisioning inserts the row
first, lets PostgreSQL assign ``tenant_number`` and only then writes the
derived schema name.  Concurrent provisions therefore hold several rows
without a schema name at once; a unique index tolerates any number of
NULLs but not duplicate empty strings.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Identity, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from schoolmate.db import SystemBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


class TenantRecord(SystemBase):
    """One row per tenant.

    Attributes
    ----------
    id:             Primary key (UUID), generated at tenant creation.
    tenant_number:  Provisioning sequence, assigned by PostgreSQL on insert.
    name:           Display name of the school.
    sub_domain:     Unique routing token.
    schema_name:    ``tenant_NNNN``, derived from ``tenant_number``.
                    NULL only while provisioning is in flight.
    is_active:      Whether the tenant may be served.
    created_at:     UTC creation timestamp.
    updated_at:     UTC timestamp of the last catalog update.
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=_uuid
    )
    tenant_number: Mapped[int] = mapped_column(
        Integer, Identity(start=1), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_domain: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    schema_name: Mapped[str | None] = mapped_column(
        String(50), nullable=True, unique=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<TenantRecord {self.id} #{self.tenant_number} "
            f"sub_domain={self.sub_domain!r} schema={self.schema_name!r}>"
        )
