"""Token commands: estimate text size and look up model context windows."""

from typing import Optional

import click

from contextfit.cli.logging import cli_command, get_cli_logger
from contextfit.cli.output import emit_error, emit_success
from contextfit.cli.registry import get_context
from contextfit.core.tokens import (
    LARGE_CONTEXT_THRESHOLD,
    METHOD_EXACT,
    TokenEstimator,
    detect_script,
    format_context_limit,
    format_token_count,
    tiktoken_tokenizer,
)

logger = get_cli_logger()


@click.command("estimate")
@click.argument("text", required=False)
@click.option("--file", "text_file", type=click.File("r"), default=None, help="Read text from a file.")
@click.option(
    "--tiktoken",
    "tiktoken_model",
    default=None,
    help="Count exactly with the tiktoken encoding for this model.",
)
@click.pass_context
@cli_command("estimate")
def estimate_cmd(
    ctx: click.Context,
    text: Optional[str],
    text_file,
    tiktoken_model: Optional[str],
) -> None:
    """Estimate the token count of TEXT (or --file)."""
    if text_file is not None:
        text = text_file.read()
    if text is None:
        emit_error(
            "No text given",
            code="MISSING_REQUIRED",
            error_type="validation",
            remediation="Pass TEXT as an argument or use --file",
        )

    config = get_context(ctx).settings.compression_config()
    tokenizer = tiktoken_tokenizer(tiktoken_model) if tiktoken_model else None
    estimator: TokenEstimator = config.make_estimator(tokenizer)
    tokens, method = estimator.estimate_with_method(text)
    if tokenizer is not None and method != METHOD_EXACT:
        logger.warning(f"tiktoken count failed for {tiktoken_model!r}; reporting the heuristic estimate")

    emit_success(
        {
            "tokens": tokens,
            "display": format_token_count(tokens),
            "characters": len(text),
            "script": detect_script(text),
            "method": "tiktoken" if method == METHOD_EXACT else "heuristic",
            "requested_method": "tiktoken" if tokenizer is not None else "heuristic",
        }
    )


@click.command("limits")
@click.argument("model_id")
@click.pass_context
@cli_command("limits")
def limits_cmd(ctx: click.Context, model_id: str) -> None:
    """Show the context window for MODEL_ID."""
    limit = get_context(ctx).settings.get_context_limit(model_id)
    emit_success(
        {
            "model": model_id,
            "context_limit": limit,
            "display": format_context_limit(limit),
            "large_context": limit > LARGE_CONTEXT_THRESHOLD,
        }
    )
