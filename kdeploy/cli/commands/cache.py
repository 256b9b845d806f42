"""Commands operating on the local releases directory."""

from __future__ import annotations

from kdeploy.cli.commands._helpers import exit_with_code, graceful_stop, unwrap_or_exit
from kdeploy.cli.context import build_context
from kdeploy.core.errors import ErrorCode
from kdeploy.output.console import Style
from kdeploy.output.progress import RichTransferProgress
from kdeploy.release.divergence import Verdict
from kdeploy.services.deploy import DeployService


def prune() -> None:
    """Apply the retention policy to the releases directory."""
    ctx = build_context()
    service = DeployService(settings=ctx.settings, console=ctx.console, host=None)
    outcome = unwrap_or_exit(service.prune(), ctx)

    if outcome.changed:
        ctx.console.success(f"removed {len(outcome.removed)} artifact(s)")
    else:
        ctx.console.success("nothing to prune")
    for failure in outcome.failures:
        ctx.console.print(f"not deleted: {failure.path}", Style.DIM)


def check() -> None:
    """Report manifest records without a local file."""
    ctx = build_context()
    service = DeployService(settings=ctx.settings, console=ctx.console, host=None)
    missing = unwrap_or_exit(service.check(), ctx)

    if missing:
        exit_with_code(int(ErrorCode.IO_ERROR))
    ctx.console.success("all manifest assets present")


def sync() -> None:
    """Compare with the last GitHub release and refresh the cache if it diverged."""
    ctx = build_context()
    if ctx.host is None:
        ctx.console.error("sync needs a GitHub token and github.owner/github.repo")
        exit_with_code(int(ErrorCode.CONFIG_ERROR))

    with graceful_stop(ctx) as stop, RichTransferProgress(ctx.console.rich) as progress:
        service = DeployService(
            settings=ctx.settings,
            console=ctx.console,
            host=ctx.host,
            progress=progress,
            should_stop=stop,
        )
        last = unwrap_or_exit(service.last_release(), ctx)
        report = unwrap_or_exit(service.sync(last), ctx)

    if report is None:
        return
    match report.divergence.verdict:
        case Verdict.IN_SYNC:
            ctx.console.success("local releases match GitHub")
        case Verdict.FIRST_RELEASE | Verdict.NO_REMOTE_MANIFEST:
            ctx.console.info("nothing to sync")
        case Verdict.REFRESH_REQUIRED:
            count = len(report.sync.downloaded) if report.sync else 0
            ctx.console.success(f"refreshed {count} asset(s) from GitHub")
