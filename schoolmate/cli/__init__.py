"""
Schoolmate - Command Line Interface

Operator commands for the schema-per-tenant store.

Usage:
    $ schoolmate tenants list
    $ schoolmate tenants create "Green Valley High" greenvalley
    $ schoolmate tenants check
    $ schoolmate tenants repair <tenant-id>
    $ schoolmate sweep otp

Sub-command Groups:
    tenants - Tenant catalog and provisioning
    sweep   - Run a cross-tenant cleanup sweep once
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import typer

from schoolmate import __version__
from schoolmate.bootstrap import TenancyServices, build_services
from schoolmate.cli.output import (
    console,
    print_error,
    print_report,
    print_success,
    print_table,
    print_warning,
)
from schoolmate.config.settings import settings
from schoolmate.logging_config import configure_logging
from schoolmate.tenancy.errors import TenancyError
from schoolmate.tenancy.identity import parse_tenant_id

T = TypeVar("T")

app = typer.Typer(
    name="schoolmate",
    help="Schoolmate - multi-tenant school management backend",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)

tenants_app = typer.Typer(
    name="tenants",
    help="Tenant catalog and provisioning commands",
    no_args_is_help=True,
)

sweep_app = typer.Typer(
    name="sweep",
    help="Run a cross-tenant cleanup sweep once",
    no_args_is_help=True,
)

app.add_typer(tenants_app, name="tenants")
app.add_typer(sweep_app, name="sweep")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Schoolmate version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    if value:
        configure_logging(logging.DEBUG)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable verbose output.",
    ),
) -> None:
    """Schoolmate operator CLI."""


def _run(action: Callable[[TenancyServices], Awaitable[T]]) -> T:
    """Build services, run ``action`` against them and dispose the engine."""

    async def runner() -> T:
        services = build_services(settings)
        try:
            return await action(services)
        finally:
            await services.aclose()

    try:
        return asyncio.run(runner())
    except (TenancyError, ValueError) as exc:
        print_error(str(exc))
        raise typer.Exit(code=1) from exc


# ---------------------------------------------------------------------------
# tenants
# ---------------------------------------------------------------------------


@tenants_app.command("list")
def list_tenants() -> None:
    """List provisioned tenants."""
    tenants = _run(lambda s: s.provisioning.get_all_tenants())
    if not tenants:
        console.print("[dim]No tenants[/dim]")
        return
    print_table(
        "Tenants",
        ["ID", "Name", "Sub-domain", "Schema"],
        [[str(t.id), t.name, t.sub_domain, t.schema_name] for t in tenants],
    )


@tenants_app.command("create")
def create_tenant(
    name: str = typer.Argument(..., help="Display name of the school."),
    sub_domain: str = typer.Argument(..., help="Unique sub-domain label."),
) -> None:
    """Create a tenant and its schema."""
    identity = _run(lambda s: s.provisioning.create_tenant(name, sub_domain))
    print_success(f"Created {identity.name}", details=f"id={identity.id} schema={identity.schema_name}")


@tenants_app.command("check")
def check_tenants() -> None:
    """Report catalog rows that cannot be served as tenants."""
    incomplete = _run(lambda s: s.provisioning.check_consistency())
    if not incomplete:
        print_success("All tenants are fully provisioned")
        return
    for record in incomplete:
        print_warning(
            f"Tenant {record.id} (#{record.tenant_number}) is not fully provisioned",
            details=(
                f"schema={record.schema_name or '-'}; "
                f"run: schoolmate tenants repair {record.id}"
            ),
        )
    raise typer.Exit(code=1)


@tenants_app.command("repair")
def repair_tenant(
    tenant_id: str = typer.Argument(..., help="Id of the tenant to finish provisioning."),
) -> None:
    """Finish an interrupted provisioning."""
    parsed = parse_tenant_id(tenant_id)
    if parsed is None:
        print_error(f"Not a tenant id: {tenant_id!r}")
        raise typer.Exit(code=2)
    identity = _run(lambda s: s.provisioning.resume_provisioning(parsed))
    print_success(f"Provisioned {identity.name}", details=f"schema={identity.schema_name}")


# ---------------------------------------------------------------------------
# sweep
# ---------------------------------------------------------------------------


def _sweep(key: str) -> None:
    report = _run(lambda s: s.sweeps[key].run_once())
    print_report(report.to_dict())
    if report.failed:
        raise typer.Exit(code=1)


@sweep_app.command("otp")
def sweep_otp() -> None:
    """Delete expired OTP codes in every tenant."""
    _sweep("otp")


@sweep_app.command("fcm")
def sweep_fcm() -> None:
    """Delete stale inactive push tokens in every tenant."""
    _sweep("fcm")
