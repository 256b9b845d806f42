from __future__ import annotations

import typer

from kdeploy.cli.commands._helpers import unwrap_or_exit
from kdeploy.cli.context import build_context
from kdeploy.services.deploy import DeployService


def next_version() -> None:
    """Print the version the next deploy would use."""
    ctx = build_context()
    service = DeployService(settings=ctx.settings, console=ctx.console, host=ctx.host)
    last = unwrap_or_exit(service.last_release(), ctx)
    typer.echo(unwrap_or_exit(service.resolve_version(None, last), ctx))
