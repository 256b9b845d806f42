"""Shared helpers for CLI commands."""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from kdeploy.core.result import Err, Result
from kdeploy.output.errors import deploy_error_exit_code, print_deploy_error

if TYPE_CHECKING:
    from kdeploy.cli.context import CLIContext
    from kdeploy.services.deploy import DeployError


T = TypeVar("T")


def unwrap_or_exit(result: Result[T, DeployError], ctx: CLIContext) -> T:
    """Return the value, or print the error and exit with its code.

    Replaces the common pattern:
        match result:
            case Err(e):
                print_deploy_error(e, ctx.console)
                raise typer.Exit(code=deploy_error_exit_code(e))
            case Ok(value):
                ...
    """
    if isinstance(result, Err):
        print_deploy_error(result.error, ctx.console)
        exit_with_code(deploy_error_exit_code(result.error))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


class StopFlag:
    """Set by the first Ctrl+C; transfers stop before the next asset."""

    def __init__(self) -> None:
        self.requested = False

    def __call__(self) -> bool:
        return self.requested


@contextmanager
def graceful_stop(ctx: CLIContext) -> Iterator[StopFlag]:
    """First Ctrl+C requests a stop, the second one interrupts immediately."""
    flag = StopFlag()
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum: int, frame: FrameType | None) -> None:
        if flag.requested:
            raise KeyboardInterrupt
        flag.requested = True
        ctx.console.warning("stopping after the current transfer (Ctrl+C again to abort)")

    signal.signal(signal.SIGINT, handler)
    try:
        yield flag
    finally:
        signal.signal(signal.SIGINT, previous)
