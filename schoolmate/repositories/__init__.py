"""Tenant-scoped repositories.

Repositories never take a tenant argument: they reach the schema of the
tenant bound to the current context through the schema registry.
"""

from schoolmate.repositories.base import TenantRepository
from schoolmate.repositories.fcm_tokens import FcmTokenRepository
from schoolmate.repositories.otp import OtpRepository

__all__ = ["TenantRepository", "OtpRepository", "FcmTokenRepository"]
