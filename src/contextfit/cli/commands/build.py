"""Build command: assemble and compress a context from a JSON request.

The request is a JSON object::

    {
      "system_prompt": "...",
      "knowledge": [{"text": "...", "reference_score": 0.8}],
      "history": [{"role": "user", "text": "..."}],
      "current_message": "...",
      "model": "gpt-4o",
      "model_capacity_tokens": 128000
    }
"""

import json
from typing import Any, Callable, Optional

import click
from pydantic import ValidationError

from contextfit.cli.logging import cli_command, get_cli_logger
from contextfit.cli.output import emit_error, emit_success
from contextfit.cli.registry import get_context
from contextfit.config import VALID_SUMMARIZERS, Settings
from contextfit.core.context import CompressionConfig, ContextBuilder, coerce_history_turn, coerce_knowledge_item
from contextfit.core.summarization import ChatCompletionSummarizer, ExtractiveSummarizer, Summarizer
from contextfit.core.tokens import TokenEstimator

logger = get_cli_logger()

_STRATEGY_CHOICES = ["sliding-window", "drop-low-value", "summarize", "hybrid"]


def _make_summarizer(kind: str, settings: Settings, estimator: TokenEstimator) -> Optional[Summarizer]:
    if kind == "none":
        return None
    if kind == "chat":
        options: dict[str, Any] = {}
        if settings.summarizer_model:
            options["model"] = settings.summarizer_model
        if settings.summarizer_base_url:
            options["base_url"] = settings.summarizer_base_url
        return ChatCompletionSummarizer(**options)
    return ExtractiveSummarizer(estimator)


def _resolve_capacity(
    request: dict[str, Any],
    settings: Settings,
    capacity: Optional[int],
    model_id: Optional[str],
) -> int:
    if capacity is not None:
        return capacity
    if request.get("model_capacity_tokens") is not None:
        return int(request["model_capacity_tokens"])
    return settings.get_context_limit(model_id or request.get("model"))


def _coerce_items(request: dict[str, Any], field: str, coerce: Callable[[Any], Any]) -> list[Any]:
    """Validate one list field of the request, emitting INVALID_FORMAT on bad entries."""
    raw = request.get(field) or []
    if not isinstance(raw, list):
        emit_error(
            f"Request field {field} must be a list",
            code="INVALID_FORMAT",
            error_type="validation",
            details={"field": field},
        )
    items = []
    for index, entry in enumerate(raw):
        try:
            items.append(coerce(entry))
        except (TypeError, ValidationError) as e:
            emit_error(
                f"Invalid {field} entry at index {index}: {e}",
                code="INVALID_FORMAT",
                error_type="validation",
                remediation="Knowledge entries are strings or {text, reference_score} objects; "
                "history entries are {role, text} objects",
                details={"field": field, "index": index},
            )
    return items


def _content_fidelity(
degraded: bool, compression_applied: bool) -> str:
    if degraded:
        return "degraded"
    if compression_applied:
        return "partial"
    return "full"


@click.command("build")
@click.argument("request_file", type=click.File("r"), default="-")
@click.option(
    "--strategy",
    type=click.Choice(_STRATEGY_CHOICES, case_sensitive=False),
    default=None,
    help="Compression strategy (default from config: hybrid).",
)
@click.option("--threshold", "threshold_percent", type=int, default=None, help="Compression threshold percent (1-100).")
@click.option("--preserve", "preserve_recent_messages", type=int, default=None, help="Recent messages never dropped.")
@click.option("--reserve", "reserved_for_response_tokens", type=int, default=None, help="Tokens reserved for the response.")
@click.option("--capacity", type=int, default=None, help="Model context window in tokens.")
@click.option("--model", "model_id", default=None, help="Model id used to look up the context window.")
@click.option("--disabled", is_flag=True, help="Skip compression; only enforce the hard limit.")
@click.option(
    "--summarizer",
    type=click.Choice(VALID_SUMMARIZERS, case_sensitive=False),
    default=None,
    help="Summarizer backing the summarize step.",
)
@click.option("--metadata-only", is_flag=True, help="Omit segment content from the output.")
@click.pass_context
@cli_command("build")
def build_cmd(
    ctx: click.Context,
    request_file,
    strategy: Optional[str],
    threshold_percent: Optional[int],
    preserve_recent_messages: Optional[int],
    reserved_for_response_tokens: Optional[int],
    capacity: Optional[int],
    model_id: Optional[str],
    disabled: bool,
    summarizer: Optional[str],
    metadata_only: bool,
) -> None:
    """Assemble the context described by REQUEST_FILE (JSON, "-" for stdin)."""
    settings = get_context(ctx).settings

    try:
        request = json.load(request_file)
    except json.JSONDecodeError as e:
        emit_error(
            f"Request is not valid JSON: {e}",
            code="INVALID_FORMAT",
            error_type="validation",
            remediation="Pass a JSON object with system_prompt, knowledge, history and current_message",
        )
    if not isinstance(request, dict):
        emit_error(
            "Request must be a JSON object",
            code="INVALID_FORMAT",
            error_type="validation",
        )
    if not isinstance(request.get("current_message"), str):
        emit_error(
            "Request is missing current_message",
            code="MISSING_REQUIRED",
            error_type="validation",
            details={"field": "current_message"},
        )
    if not isinstance(request.get("system_prompt") or "", str):
        emit_error(
            "Request field system_prompt must be a string",
            code="INVALID_FORMAT",
            error_type="validation",
            details={"field": "system_prompt"},
        )

    config: CompressionConfig = settings.compression_config(
        strategy=strategy,
        threshold_percent=threshold_percent,
        preserve_recent_messages=preserve_recent_messages,
        reserved_for_response_tokens=reserved_for_response_tokens,
        enabled=False if disabled else None,
    )
    estimator = config.make_estimator()
    builder = ContextBuilder(
        config,
        estimator=estimator,
        summarizer=_make_summarizer((summarizer or settings.summarizer).lower(), settings, estimator),
    )

    knowledge = _coerce_items(request, "knowledge", coerce_knowledge_item)
    history = _coerce_items(request, "history", coerce_history_turn)

    model_capacity_tokens = _resolve_capacity(request, settings, capacity, model_id)
    logger.debug(f"Building context for capacity {model_capacity_tokens} with {config.strategy.value}")

    built = builder.build_sync(
        request.get("system_prompt") or "",
        knowledge,
        history,
        request["current_message"],
        model_capacity_tokens,
    )
    result = built.result
    emit_success(
        {
            "model_capacity_tokens": model_capacity_tokens,
            **result.to_dict(include_content=not metadata_only),
        },
        warnings=list(result.warnings),
        content_fidelity=_content_fidelity(result.degraded, result.compression_applied),
    )
