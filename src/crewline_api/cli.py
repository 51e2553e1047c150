"""`crewline` command line interface."""

from __future__ import annotations

import typer
import uvicorn

from crewline_api.core.rbac.grants import grant_keys
from crewline_api.core.rbac.registry import RESOURCES, SYSTEM_ROLES
from crewline_api.settings import Settings

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="Crewline API CLI (start, roles, permissions).",
)


@app.callback()
def _main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command(name="start", help="Start the API server.")
def start(
    host: str | None = typer.Option(
        None,
        "--host",
        help="Host/interface for the API server.",
        envvar="CREWLINE_API_HOST",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        help="Port for the API server.",
        envvar="CREWLINE_API_PORT",
        min=1,
        max=65535,
    ),
    reload: bool = typer.Option(False, "--reload", help="Reload on source changes."),
) -> None:
    settings = Settings()
    uvicorn.run(
        "crewline_api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=settings.access_log_enabled,
        # Logging is configured by create_app; keep uvicorn's config out of the way.
        log_config=None,
    )


@app.command(name="roles", help="Print the built-in roles and their grants.")
def roles() -> None:
    for definition in SYSTEM_ROLES:
        typer.echo(f"{definition.name}: {definition.description}")
        for key in grant_keys(definition.grants):
            typer.echo(f"  {key}")


@app.command(name="permissions", help="Print the resource/action catalog.")
def permissions() -> None:
    width = max(len(resource.key) for resource in RESOURCES)
    for resource in RESOURCES:
        typer.echo(f"{resource.key.ljust(width)}  {', '.join(resource.actions)}")


__all__ = ["app"]
