from __future__ import annotations

import typer

from kdeploy.cli.commands._helpers import exit_with_code, graceful_stop, unwrap_or_exit
from kdeploy.cli.context import build_context
from kdeploy.core.errors import ErrorCode
from kdeploy.output.console import Style
from kdeploy.output.progress import RichTransferProgress
from kdeploy.services.deploy import DeployService


def publish(
    tag: str = typer.Option(..., "--tag", help="Release version to publish"),
) -> None:
    """Upload the releases directory to a draft GitHub release."""
    ctx = build_context()
    if ctx.host is None:
        ctx.console.error("publish needs a GitHub token and github.owner/github.repo")
        exit_with_code(int(ErrorCode.CONFIG_ERROR))

    with graceful_stop(ctx) as stop, RichTransferProgress(
        ctx.console.rich, verb="Uploading"
    ) as progress:
        service = DeployService(
            settings=ctx.settings,
            console=ctx.console,
            host=ctx.host,
            upload_progress=progress,
            should_stop=stop,
        )
        result = unwrap_or_exit(service.publish(tag), ctx)

    if result is None:
        return
    if result.skipped:
        ctx.console.print(f"skipped {len(result.skipped)} existing asset(s)", Style.DIM)
    if result.release.html_url:
        ctx.console.print(f"Release page: {result.release.html_url}", Style.DIM)
    ctx.console.success(f"uploaded {len(result.uploaded)} asset(s) to {result.release.name}")
