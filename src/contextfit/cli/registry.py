"""Per-invocation CLI context stored on the click context object."""

from dataclasses import dataclass

import click

from contextfit.config import Settings


@dataclass
class CliContext:
    """State shared by all commands of one CLI invocation."""

    settings: Settings


def set_context(ctx: click.Context, settings: Settings) -> CliContext:
    cli_ctx = CliContext(settings=settings)
    ctx.obj = cli_ctx
    return cli_ctx


def get_context(ctx: click.Context) -> CliContext:
    """Return the CliContext, loading settings if the group callback did not run."""
    cli_ctx = ctx.find_object(CliContext)
    if cli_ctx is None:
        cli_ctx = set_context(ctx, Settings.from_env())
    return cli_ctx
