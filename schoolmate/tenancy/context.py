"""
Tenant context management for Schoolmate.

This module carries "which tenant is this operation for" through
arbitrarily deep call chains using Python's contextvars.  A binding is
local to one logical flow (an asyncio task, or a thread), so two requests
served concurrently on the same worker never see each other's tenant.

The binding deliberately does NOT follow control into background work.
``asyncio.create_task`` and ``asyncio.to_thread`` copy the caller's
context, which would smuggle the request's tenant into a task that may
outlive the request.  Use :func:`spawn_task` and :func:`run_in_thread`
instead: both start from an empty context and only see a tenant when one
is passed explicitly.

Example:
    from schoolmate.tenancy.context import TenantScope, current, require_tenant

    async with TenantScope(identity):
        current()           # identity
        require_tenant()    # identity

    current()               # None

    # Hand the tenant to a background task explicitly
    spawn_task(send_digest(), tenant=current())
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import logging
from contextvars import ContextVar, Token
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from schoolmate.tenancy.errors import TenantContextError
from schoolmate.tenancy.identity import TenantIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")

_current_tenant: ContextVar[TenantIdentity | None] = ContextVar(
    "current_tenant", default=None
)


def current() -> TenantIdentity | None:
    """Get the tenant bound to the current flow.

    Returns None when nothing is bound, which is the normal state for
    system routes and tenant-management endpoints.
    """
    return _current_tenant.get()


def bind(identity: TenantIdentity) -> Token[TenantIdentity | None]:
    """Bind a tenant to the current flow.

    Args:
        identity: The tenant to bind.

    Returns:
        A Token that restores the previous binding via :func:`reset`.
    """
    logger.debug("Binding tenant %s", identity.schema_name)
    return _current_tenant.set(identity)


def reset(token: Token[TenantIdentity | None]) -> None:
    """Restore the binding that was active before ``token`` was issued."""
    _current_tenant.reset(token)


def clear() -> None:
    """Remove any tenant binding from the current flow."""
    _current_tenant.set(None)


def require_tenant() -> TenantIdentity:
    """Get the current tenant or raise.

    Raises:
        TenantContextError: If no tenant is bound.
    """
    identity = _current_tenant.get()
    if identity is None:
        raise TenantContextError(
            "No tenant bound to the current context. Tenant-scoped code must "
            "run inside a resolved request or a sweep iteration."
        )
    return identity


class TenantScope:
    """Scoped tenant binding.

    Binds on entry and restores the previous binding on every exit path,
    including exceptions and task cancellation.  Usable as a sync or
    async context manager.

    Example:
        with TenantScope(identity):
            repo.cleanup()

        async with TenantScope(identity):
            await repo.cleanup()
    """

    def __init__(self, identity: TenantIdentity):
        self._identity = identity
        self._token: Token[TenantIdentity | None] | None = None

    @property
    def identity(self) -> TenantIdentity:
        return self._identity

    def __enter__(self) -> TenantIdentity:
        self._token = bind(self._identity)
        return self._identity

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        if self._token is not None:
            reset(self._token)
            self._token = None

    async def __aenter__(self) -> TenantIdentity:
        return self.__enter__()

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


async def _run_bound(coro: Awaitable[T], tenant: TenantIdentity | None) -> T:
    if tenant is None:
        return await coro
    async with TenantScope(tenant):
        return await coro


def spawn_task(
    coro: Coroutine[Any, Any, T],
    *,
    tenant: TenantIdentity | None = None,
    name: str | None = None,
) -> asyncio.Task[T]:
    """Start a task that does not inherit the caller's tenant.

    The task runs in a fresh, empty context.  If ``tenant`` is given it is
    bound inside the task for the task's whole lifetime.

    Args:
        coro: The coroutine to run.
        tenant: Tenant to re-bind inside the task, if any.
        name: Optional task name.
    """
    loop = asyncio.get_running_loop()
    return loop.create_task(
        _run_bound(coro, tenant), name=name, context=contextvars.Context()
    )


def _call_bound(tenant: TenantIdentity | None, fn: Callable[..., T], *args: Any) -> T:
    if tenant is None:
        return fn(*args)
    with TenantScope(tenant):
        return fn(*args)


async def run_in_thread(
    fn: Callable[..., T],
    *args: Any,
    tenant: TenantIdentity | None = None,
) -> T:
    """Run a blocking callable on the default executor without leaking context.

    Unlike ``asyncio.to_thread`` the worker starts from an empty context;
    ``tenant`` is the only binding it sees.
    """
    loop = asyncio.get_running_loop()
    ctx = contextvars.Context()
    return await loop.run_in_executor(
        None, functools.partial(ctx.run, _call_bound, tenant, fn, *args)
    )


F = TypeVar("F", bound=Callable[..., Any])


def tenant_required(func: F) -> F:
    """Decorator that raises TenantContextError unless a tenant is bound."""
    if asyncio.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            require_tenant()
            return await func(*args, **kwargs)
        return async_wrapper  # type: ignore
    else:
        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            require_tenant()
            return func(*args, **kwargs)
        return sync_wrapper  # type: ignore
