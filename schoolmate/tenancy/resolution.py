"""
Tenant resolution for inbound requests.

:class:`TenantResolutionMiddleware` decides which tenant a request is for,
binds it for the duration of the request and always restores the previous
binding afterwards, on success, error and cancellation alike.
Per request it is a two-state machine:

    Unresolved -> Resolved   header names a cataloged tenant; the app runs
    Unresolved -> Rejected   missing/malformed header or unknown tenant;
                             the app never runs

Requests under a bypass prefix (tenant management, console, health) skip
resolution and run with no tenant bound.

Example:
    from fastapi import FastAPI
    from schoolmate.tenancy.resolution import TenantResolutionMiddleware

    app = FastAPI()
    app.add_middleware(
        TenantResolutionMiddleware,
        header_name="X-Tenant",
        bypass_prefixes=("/api/v1/tenants", "/api/v1/console"),
    )
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from starlette.responses import JSONResponse

from schoolmate.tenancy.catalog import TenantCatalog
from schoolmate.tenancy.context import bind, reset
from schoolmate.tenancy.identity import TenantIdentity, is_valid_schema_name, parse_tenant_id

logger = logging.getLogger(__name__)

TENANT_NOT_FOUND_MESSAGE = "Tenant not found"

DEFAULT_BYPASS_PREFIXES = ("/api/v1/tenants", "/api/v1/console")


class TenantResolutionMiddleware:
    """ASGI middleware that resolves and binds the request's tenant.

    The resolved identity is bound in the tenant context and also stored
    on ``request.state.tenant`` so route code can receive it through a
    dependency instead of reading ambient state.

    Attributes:
        app: The ASGI application to wrap.
        header_name: Header carrying the tenant id.
        bypass_prefixes: Path prefixes that skip resolution.
        not_found_status: HTTP status of the rejection response.
    """

    def __init__(
        self,
        app: Any,
        catalog: TenantCatalog | None = None,
        header_name: str = "X-Tenant",
        bypass_prefixes: Sequence[str] = DEFAULT_BYPASS_PREFIXES,
        not_found_status: int = 404,
    ):
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            catalog: Catalog to resolve against. When omitted it is read
                from ``app.state.catalog`` on each request, which lets the
                application build it during startup.
            header_name: Header carrying the tenant id.
            bypass_prefixes: Path prefixes that skip resolution.
            not_found_status: HTTP status of the rejection response.
        """
        self.app = app
        self.catalog = catalog
        self.header_name = header_name.lower().encode("latin-1")
        self.bypass_prefixes = tuple(bypass_prefixes)
        self.not_found_status = not_found_status

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        if self.is_bypassed(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        identity = await self._resolve(scope)
        if identity is None:
            await self._reject(scope, receive, send)
            return

        token = bind(identity)
        try:
            scope.setdefault("state", {})["tenant"] = identity
            await self.app(scope, receive, send)
        finally:
            reset(token)

    def is_bypassed(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.bypass_prefixes)

    def _catalog_for(self, scope: dict[str, Any]) -> TenantCatalog:
        if self.catalog is not None:
            return self.catalog
        return scope["app"].state.catalog

    def _header(self, scope: dict[str, Any]) -> str | None:
        for key, value in scope.get("headers", []):
            if key.lower() == self.header_name:
                return value.decode("latin-1")
        return None

    async def _resolve(self, scope: dict[str, Any]) -> TenantIdentity | None:
        """Resolve the tenant named by the request header.

        Returns:
            The identity, or None when the header is missing, malformed,
            unknown, or names a tenant without a usable schema name.
        """
        tenant_id = parse_tenant_id(self._header(scope))
        if tenant_id is None:
            return None

        record = await self._catalog_for(scope).get(tenant_id)
        if record is None:
            return None
        if not is_valid_schema_name(record.schema_name):
            logger.warning(
                "Rejecting request for tenant %s: unusable schema name %r",
                tenant_id,
                record.schema_name,
            )
            return None
        return TenantIdentity.from_record(record)

    async def _reject(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        logger.info("Tenant resolution failed for %s", scope.get("path", ""))
        if scope["type"] == "websocket":
            await send({"type": "websocket.close", "code": 1008, "reason": TENANT_NOT_FOUND_MESSAGE})
            return
        response = JSONResponse(
            {"success": False, "message": TENANT_NOT_FOUND_MESSAGE},
            status_code=self.not_found_status,
        )
        await response(scope, receive, send)
