"""Tenant management endpoints.

These live under a bypass prefix: they run without a resolved tenant.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from schoolmate.api.dependencies import get_provisioning
from schoolmate.api.responses import ApiResponse, CreateTenantRequest, TenantOut
from schoolmate.tenancy.context import current
from schoolmate.tenancy.errors import TenantContextError
from schoolmate.tenancy.provisioning import TenantProvisioningService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tenants", tags=["tenants"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: CreateTenantRequest,
    provisioning: TenantProvisioningService = Depends(get_provisioning),
) -> ApiResponse[TenantOut]:
    identity = await provisioning.create_tenant(body.name, body.sub_domain)
    return ApiResponse(
        success=True,
        data=TenantOut.from_identity(identity),
        message="Tenant created successfully",
    )


@router.get("")
async def list_tenants(
    provisioning: TenantProvisioningService = Depends(get_provisioning),
) -> ApiResponse[list[TenantOut]]:
    tenants = await provisioning.get_all_tenants()
    return ApiResponse(success=True, data=[TenantOut.from_identity(t) for t in tenants])


@router.get("/web/{sub_domain}")
async def get_tenant_by_sub_domain(
    sub_domain: str,
    provisioning: TenantProvisioningService = Depends(get_provisioning),
) -> ApiResponse[TenantOut]:
    identity = await provisioning.get_tenant_by_sub_domain(sub_domain)
    return ApiResponse(success=True, data=TenantOut.from_identity(identity))


@router.get("/current")
async def current_tenant() -> ApiResponse[TenantOut]:
    identity = current()
    if identity is None:
        raise TenantContextError("No tenant context found")
    return ApiResponse(success=True, data=TenantOut.from_identity(identity))
