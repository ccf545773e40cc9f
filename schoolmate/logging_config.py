"""Process-wide logging setup.

Every record gets a ``tenant`` attribute holding the schema name of the
tenant bound to the emitting flow, or ``-`` outside any tenant.
"""

from __future__ import annotations

import logging

from schoolmate.tenancy.context import current

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [tenant=%(tenant)s] %(message)s"


class TenantLogFilter(logging.Filter):
    """Stamp records with the current tenant's schema name."""

    def filter(self, record: logging.LogRecord) -> bool:
        identity = current()
        record.tenant = identity.schema_name if identity is not None else "-"
        return True


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    if not any(isinstance(f, TenantLogFilter) for h in root.handlers for f in h.filters):
        logging.basicConfig(level=level, format=LOG_FORMAT)
        for handler in root.handlers:
            handler.addFilter(TenantLogFilter())
    root.setLevel(level)
