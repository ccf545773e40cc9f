"""SQLAlchemy models: the system catalog and the per-tenant school tables."""

from schoolmate.models.catalog import TenantRecord
from schoolmate.models.school import TENANT_SCHEMA_VERSION, TENANT_TABLES, FcmToken, OtpCode

__all__ = [
    "TenantRecord",
    "TENANT_SCHEMA_VERSION",
    "TENANT_TABLES",
    "FcmToken",
    "OtpCode",
]
