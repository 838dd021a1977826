"""CLI interface for alloctrack.

Provides commands for:
- Starting the allocation server
- Managing resources and allocations directly against the database
- Seeding a development database
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click
import uvicorn

from alloctrack import __version__
from alloctrack.config import get_settings
from alloctrack.core.errors import AllocTrackError
from alloctrack.core.ledger import allocated_amount
from alloctrack.core.records import ResourceWithAllocations
from alloctrack.db import close_db, init_db
from alloctrack.logging import configure_logging
from alloctrack.services import Services, build_sql_services

T = TypeVar("T")

SEED_ADMIN = "admin@example.com"


def _run(operation: Callable[[Services], Awaitable[T]]) -> T:
    """Run ``operation`` against the configured database."""

    async def runner() -> T:
        await init_db()
        try:
            return await operation(build_sql_services())
        finally:
            await close_db()

    try:
        return asyncio.run(runner())
    except AllocTrackError as exc:
        raise click.ClickException(exc.message) from exc


def _echo_resource(state: ResourceWithAllocations) -> None:
    resource = state.resource
    allocated = allocated_amount(state.allocations)
    click.echo(f"  {click.style(resource.name, fg='green', bold=True)}  ({resource.id})")
    click.echo(
        f"    total {resource.total_amount}, allocated {allocated}, "
        f"remaining {resource.total_amount - allocated}"
    )


@click.group()
@click.version_option(version=__version__, prog_name="alloctrack")
def cli() -> None:
    """alloctrack - resource allocation tracker."""
    settings = get_settings()
    configure_logging(
        json_format=settings.log_json and not settings.debug,
        level="DEBUG" if settings.debug else settings.log_level,
    )


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the allocation server."""
    settings = get_settings()
    actual_host = host or settings.host
    actual_port = port or settings.port

    click.echo(f"Starting alloctrack server on {actual_host}:{actual_port}")
    uvicorn.run(
        "alloctrack.server:app",
        host=actual_host,
        port=actual_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.group()
def resources() -> None:
    """Resource management commands."""
    pass


@resources.command("list")
def list_resources() -> None:
    """List all resources with remaining capacity."""
    states = _run(lambda s: s.resources.list_resources())
    if not states:
        click.echo("No resources.")
        return
    click.echo(f"Resources ({len(states)}):\n")
    for state in states:
        _echo_resource(state)


@resources.command("create")
@click.argument("name")
@click.argument("total_amount", type=int)
def create_resource(name: str, total_amount: int) -> None:
    """Create a resource with TOTAL_AMOUNT units."""
    resource = _run(lambda s: s.resources.create_resource(name, total_amount))
    click.echo(f"Created {resource.name} ({resource.id}) with {resource.total_amount} units")


@resources.command("update")
@click.argument("resource_id")
@click.argument("name")
@click.argument("total_amount", type=int)
def update_resource(resource_id: str, name: str, total_amount: int) -> None:
    """Rename and resize a resource."""
    resource = _run(lambda s: s.resources.update_resource(resource_id, name, total_amount))
    click.echo(f"Updated {resource.name} ({resource.id}) to {resource.total_amount} units")


@resources.command("delete")
@click.argument("resource_id")
@click.confirmation_option(prompt="Delete the resource and all its allocations?")
def delete_resource(resource_id: str) -> None:
    """Delete a resource and its allocations."""
    _run(lambda s: s.resources.delete_resource(resource_id))
    click.echo(f"Deleted {resource_id}")


@cli.group()
def allocations() -> None:
    """Allocation commands, acting as --user."""
    pass


@allocations.command("list")
@click.option("--user", "-u", "user_id", required=True, help="User id")
def list_allocations(user_id: str) -> None:
    """List a user's allocations."""
    items = _run(lambda s: s.allocations.get_allocations_for_user(user_id))
    if not items:
        click.echo(f"No allocations for {user_id}.")
        return
    for item in items:
        click.echo(f"  {item.resource.name}: {item.allocation.amount}")


@allocations.command("set")
@click.option("--user", "-u", "user_id", required=True, help="User id")
@click.argument("resource_id")
@click.argument("amount", type=int)
def set_allocation(user_id: str, resource_id: str, amount: int) -> None:
    """Set the user's claim on RESOURCE_ID to AMOUNT."""
    result = _run(lambda s: s.allocations.set_allocation(user_id, resource_id, amount))
    click.echo(f"Allocation {result.status.value}; remaining {result.remaining_amount}")


@allocations.command("release")
@click.option("--user", "-u", "user_id", required=True, help="User id")
@click.argument("resource_id")
def release_allocation(user_id: str, resource_id: str) -> None:
    """Release the user's claim on RESOURCE_ID."""
    result = _run(lambda s: s.allocations.release_allocation(user_id, resource_id))
    click.echo(f"Allocation released; remaining {result.remaining_amount}")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask before clearing existing data")
def seed(yes: bool) -> None:
    """Replace all data with sample resources and an allocation."""
    if not yes:
        click.confirm("This deletes every resource and allocation. Continue?", abort=True)

    async def seed_db(services: Services) -> list[ResourceWithAllocations]:
        for state in await services.resources.list_resources():
            await services.resources.delete_resource(state.resource.id)
        first = await services.resources.create_resource("Sample Resource 1", 100)
        await services.resources.create_resource("Sample Resource 2", 200)
        await services.allocations.set_allocation(SEED_ADMIN, first.id, 50)
        return await services.resources.list_resources()

    states = _run(seed_db)
    click.echo(f"Seeded {len(states)} resources:\n")
    for state in states:
        _echo_resource(state)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
