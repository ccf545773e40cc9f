"""Tenant-scoped endpoints: every request here has passed tenant resolution."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolmate.api.dependencies import get_tenant
from schoolmate.api.responses import ApiResponse, TenantOut
from schoolmate.tenancy.identity import TenantIdentity

router = APIRouter(prefix="/api/v1/school", tags=["school"])


@router.get("/whoami")
async def whoami(tenant: TenantIdentity = Depends(get_tenant)) -> ApiResponse[TenantOut]:
    return ApiResponse(success=True, data=TenantOut.from_identity(tenant))
