from __future__ import annotations

import typer

from kdeploy.cli.commands._helpers import graceful_stop, unwrap_or_exit
from kdeploy.cli.context import build_context
from kdeploy.output.console import Style
from kdeploy.output.progress import RichTransferProgress
from kdeploy.services.deploy import DeployService


def deploy(
    tag: str | None = typer.Option(
        None, "--tag", help="Release version (default: yyyy.Mdd.N from today's date)"
    ),
    upload: bool | None = typer.Option(
        None, "--upload/--no-upload", help="Publish to GitHub (default: github.upload in config)"
    ),
) -> None:
    """Build, package, prune and publish a release."""
    ctx = build_context()
    ctx.console.header("kdeploy")

    with graceful_stop(ctx) as stop, RichTransferProgress(ctx.console.rich) as progress:
        service = DeployService(
            settings=ctx.settings,
            console=ctx.console,
            host=ctx.host,
            progress=progress,
            upload_progress=progress.with_verb("Uploading"),
            should_stop=stop,
        )
        report = unwrap_or_exit(service.deploy(version=tag, upload=upload), ctx)

    if report.missing:
        ctx.console.warning(f"{len(report.missing)} manifest asset(s) missing locally")
    if report.publish is not None:
        page = report.publish.release.html_url
        if page:
            ctx.console.print(f"Release page: {page}", Style.DIM)
    ctx.console.success(f"Done! {report.version}")
