"""Health check endpoint."""

from fastapi import APIRouter

from schoolmate import __version__
from schoolmate.models.school import TENANT_SCHEMA_VERSION

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": __version__,
        "tenant_schema_version": TENANT_SCHEMA_VERSION,
    }
