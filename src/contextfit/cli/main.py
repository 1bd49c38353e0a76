"""contextfit command line entry point."""

import click

from contextfit.cli.commands import build_cmd, estimate_cmd, limits_cmd
from contextfit.cli.output import emit_exception
from contextfit.cli.registry import set_context
from contextfit.config import _PACKAGE_VERSION, load_config
from contextfit.core.errors import ConfigurationError


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML config file (overrides the layered config search).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level for messages written to stderr.",
)
@click.version_option(_PACKAGE_VERSION, prog_name="contextfit")
@click.pass_context
def cli(ctx: click.Context, config_file, log_level) -> None:
    """Assemble token-budgeted LLM context from prompts, knowledge and history."""
    try:
        settings = load_config(config_file)
    except ConfigurationError as e:
        emit_exception(e, remediation="Fix the config file or CONTEXTFIT_* environment variables")

    if log_level:
        settings.log_level = log_level.upper()
    settings.setup_logging()
    set_context(ctx, settings)


cli.add_command(build_cmd)
cli.add_command(estimate_cmd)
cli.add_command(limits_cmd)


if __name__ == "__main__":
    cli()
