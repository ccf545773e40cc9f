"""
Tenant identity value and schema-name derivation.

A :class:`TenantIdentity` describes one tenant for the duration of a
single request or sweep iteration.  It is rebuilt from the catalog every
time and never cached beyond that scope.

Example:
    from schoolmate.tenancy.identity import TenantIdentity, schema_name_for

    schema_name_for(1)        # "tenant_0001"
    identity = TenantIdentity.from_record(record)
    identity.schema_name      # "tenant_0001"
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

from schoolmate.tenancy.errors import ProvisioningInconsistencyError

if TYPE_CHECKING:
    from schoolmate.models.catalog import TenantRecord

logger = logging.getLogger(__name__)

SCHEMA_PREFIX = "tenant_"

# Only names produced by schema_name_for() are accepted anywhere SQL is built
SCHEMA_NAME_RE = re.compile(r"^tenant_[0-9]{4,}$")

# Lowercase DNS label
SUB_DOMAIN_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def schema_name_for(tenant_number: int) -> str:
    """Derive the physical schema name from the provisioning sequence.

    Args:
        tenant_number: The catalog-assigned sequence value (>= 1).

    Returns:
        ``"tenant_"`` followed by the number zero-padded to four digits.

    Raises:
        ValueError: If the number is not positive.
    """
    if tenant_number < 1:
        raise ValueError(f"tenant_number must be positive, got {tenant_number}")
    return f"{SCHEMA_PREFIX}{tenant_number:04d}"


def is_valid_schema_name(schema_name: str | None) -> bool:
    return bool(schema_name) and SCHEMA_NAME_RE.match(schema_name) is not None


def parse_tenant_id(raw: str | None) -> uuid.UUID | None:
    """Parse a tenant token into a UUID, or None when absent or malformed."""
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class TenantIdentity:
    """Immutable description of one tenant.

    Attributes:
        id: Globally unique tenant identifier.
        name: Display name of the school.
        sub_domain: Unique routing token.
        schema_name: Physical schema holding the tenant's tables.
    """

    id: uuid.UUID
    name: str
    sub_domain: str
    schema_name: str

    def __post_init__(self) -> None:
        if not is_valid_schema_name(self.schema_name):
            raise ValueError(f"Invalid tenant schema name: {self.schema_name!r}")

    @classmethod
    def from_record(cls, record: TenantRecord) -> "TenantIdentity":
        """Build an identity from a catalog row.

        Raises:
            ProvisioningInconsistencyError: If the row never received its
                schema name or carries one that is not a tenant schema.
        """
        if not is_valid_schema_name(record.schema_name):
            raise ProvisioningInconsistencyError(
                record.id, record.tenant_number, record.schema_name
            )
        return cls(
            id=record.id,
            name=record.name,
            sub_domain=record.sub_domain,
            schema_name=record.schema_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "sub_domain": self.sub_domain,
            "schema_name": self.schema_name,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.schema_name})"


def partition_records(
    records: Iterable[TenantRecord],
) -> tuple[list[TenantIdentity], list[TenantRecord]]:
    """Split catalog rows into usable tenants and unusable rows.

    A row is unusable when its schema name is missing or is not a
    ``tenant_NNNN`` name.  Unusable rows are logged and never become
    identities.

    Returns:
        ``(identities, unusable)``, both in input order.
    """
    identities: list[TenantIdentity] = []
    unusable: list[TenantRecord] = []
    for record in records:
        if not is_valid_schema_name(record.schema_name):
            logger.warning(
                "Skipping tenant %s (#%s): unusable schema name %r",
                record.id,
                record.tenant_number,
                record.schema_name,
            )
            unusable.append(record)
            continue
        identities.append(TenantIdentity.from_record(record))
    return identities, unusable
