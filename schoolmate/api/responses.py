"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from schoolmate.tenancy.identity import TenantIdentity

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool
    data: T | None = None
    message: str | None = None


class TenantOut(BaseModel):
    id: str
    name: str
    sub_domain: str
    schema_name: str

    @classmethod
    def from_identity(cls, identity: TenantIdentity) -> "TenantOut":
        return cls(**identity.to_dict())


class CreateTenantRequest(BaseModel):
    name: str
    sub_domain: str
