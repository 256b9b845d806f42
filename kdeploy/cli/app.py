from __future__ import annotations

import typer

from kdeploy import __version__
from kdeploy.cli.commands.cache import check, prune, sync
from kdeploy.cli.commands.deploy_cmd import deploy
from kdeploy.cli.commands.publish_cmd import publish
from kdeploy.cli.commands.version_cmd import next_version

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(deploy)
app.command()(prune)
app.command()(check)
app.command()(sync)
app.command()(publish)
app.command("next-version")(next_version)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    """Package versioned releases and keep them in sync with GitHub."""


def main() -> None:
    app()
