"""FastAPI dependencies for tenant-aware routes."""

from __future__ import annotations

from fastapi import Request

from schoolmate.bootstrap import TenancyServices
from schoolmate.tenancy.errors import TenantContextError
from schoolmate.tenancy.identity import TenantIdentity
from schoolmate.tenancy.provisioning import TenantProvisioningService


def get_services(request: Request) -> TenancyServices:
    return request.app.state.services


def get_provisioning(request: Request) -> TenantProvisioningService:
    return get_services(request).provisioning


def get_tenant(request: Request) -> TenantIdentity:
    """The tenant resolved for this request.

    Raises:
        TenantContextError: If the route is reachable without resolution
            (e.g. mounted under a bypass prefix).
    """
    identity = getattr(request.state, "tenant", None)
    if identity is None:
        raise TenantContextError("This endpoint requires a resolved tenant")
    return identity
