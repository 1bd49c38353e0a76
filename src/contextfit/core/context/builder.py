"""ContextBuilder facade.

Orchestrates assembly, the budget check, compression and the hard limit for
one call, and exposes the ``build_context`` operation. Configuration is
validated eagerly so an invalid setup fails before any assembly work.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from contextfit.config.decorators import timed
from contextfit.core.summarization import Summarizer
from contextfit.core.tokens import TokenEstimator

from .assembler import ContextAssembler, HistoryInput, KnowledgeInput
from .config import CompressionConfig
from .constants import SUMMARY_ROLE
from .engine import CompressionEngine
from .models import AssemblyState, CompressionResult, ContextSegment, HistoryTurn, SegmentKind

logger = logging.getLogger(__name__)

ConfigInput = Union[CompressionConfig, Mapping[str, Any]]


@dataclass(frozen=True)
class BuildResult:
    """Ordered segments plus compression metadata for one build call."""

    segments: tuple[ContextSegment, ...]
    result: CompressionResult

    def __iter__(self):
        # Allows ``segments, result = await builder.build(...)``
        return iter((list(self.segments), self.result))

    def to_dict(self, *, include_content: bool = True) -> dict[str, Any]:
        return self.result.to_dict(include_content=include_content)


def _coerce_config(config: ConfigInput) -> CompressionConfig:
    if isinstance(config, CompressionConfig):
        return config
    return CompressionConfig.from_mapping(config)


class ContextBuilder:
    """Facade assembling and compressing the context for LLM calls.

    The builder keeps no per-call state. A single instance can serve many
    conversations concurrently.

    Attributes:
        config: Validated compression settings
        estimator: Token estimator shared by assembler and engine
        summarizer: Optional Summarizer for Summarize and Hybrid

    Example:
        builder = ContextBuilder(
            {"threshold_percent": 80, "preserve_recent_messages": 3,
             "reserved_for_response_tokens": 200},
            summarizer=ExtractiveSummarizer(),
        )
        segments, result = await builder.build(
            system_prompt="You are a helpful assistant.",
            knowledge_items=[("Paris is the capital of France.", 0.9)],
            history=[("user", "Hi"), ("assistant", "Hello!")],
            current_message="What is the capital of France?",
            model_capacity_tokens=8192,
        )
        print(f"{result.percentage_used}% used, strategy={result.strategy_used.value}")

    Raises:
        ConfigurationError: On construction, if the configuration is invalid
    """

    def __init__(
        self,
        config: ConfigInput,
        *,
        estimator: Optional[TokenEstimator] = None,
        summarizer: Optional[Summarizer] = None,
    ):
        self.config = _coerce_config(config)
        self.estimator = estimator or self.config.make_estimator()
        self.summarizer = summarizer
        self._assembler = ContextAssembler(
            self.estimator,
            message_overhead_tokens=self.config.message_overhead_tokens,
        )
        self._engine = CompressionEngine(
            self.estimator,
            summarizer=summarizer,
            summarizer_timeout=self.config.summarizer_timeout_seconds,
            hybrid_window_max_drops=self.config.hybrid_window_max_drops,
            message_overhead_tokens=self.config.message_overhead_tokens,
            status_bands=self.config.status_bands,
        )

    @timed("context.build")
    async def build(
        self,
        system_prompt: Optional[str],
        knowledge_items: Iterable[KnowledgeInput],
        history: Sequence[HistoryInput],
        current_message: str,
        model_capacity_tokens: int,
    ) -> BuildResult:
        """Assemble the context for one call and compress it if needed.

        Args:
            system_prompt: System prompt (None is treated as empty)
            knowledge_items: Retrieved snippets, relevance-ranked
            history: Prior turns, oldest first
            current_message: The message being answered
            model_capacity_tokens: Context window of the target model

        Returns:
            BuildResult with the ordered segments and CompressionResult

        Raises:
            ConfigurationError: If the budget is invalid for this model
        """
        budget = self.config.to_budget(model_capacity_tokens)
        assembled = self._assembler.assemble(system_prompt, knowledge_items, history, current_message)

        if self.config.enabled:
            result = await self._engine.compress(assembled.segments, budget, self.config.strategy)
        else:
            logger.debug("Compression disabled, enforcing hard limit only")
            result = self._engine.fit_hard_limit(assembled.segments, budget)

        result = result.with_state_prefix(AssemblyState.COLLECTING)
        if result.degraded:
            logger.warning(
                f"Context degraded: {result.tokens_used}/{budget.effective_budget} tokens after "
                f"{result.strategy_used.value}; {'; '.join(result.warnings)}"
            )
        else:
            logger.debug(
                f"Built context: {result.tokens_used}/{budget.effective_budget} tokens "
                f"({result.status.value}), strategy={result.strategy_used.value}, "
                f"dropped={result.dropped_count}"
            )
        return BuildResult(segments=result.kept_segments, result=result)

    def build_sync(
        self,
        system_prompt: Optional[str],
        knowledge_items: Iterable[KnowledgeInput],
        history: Sequence[HistoryInput],
        current_message: str,
        model_capacity_tokens: int,
    ) -> BuildResult:
        """Blocking wrapper around build() for callers without an event loop."""
        return asyncio.run(
            self.build(system_prompt, knowledge_items, history, current_message, model_capacity_tokens)
        )


async def build_context(
    system_prompt: Optional[str],
    knowledge_items: Iterable[KnowledgeInput],
    history: Sequence[HistoryInput],
    current_message: str,
    model_capacity_tokens: int,
    config: ConfigInput,
    *,
    estimator: Optional[TokenEstimator] = None,
    summarizer: Optional[Summarizer] = None,
) -> tuple[list[ContextSegment], CompressionResult]:
    """Build the bounded context for one inference call.

    Returns:
        ``(ordered_segments, CompressionResult)``

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    builder = ContextBuilder(config, estimator=estimator, summarizer=summarizer)
    built = await builder.build(system_prompt, knowledge_items, history, current_message, model_capacity_tokens)
    return list(built.segments), built.result


def build_context_sync(
    system_prompt: Optional[str],
    knowledge_items: Iterable[KnowledgeInput],
    history: Sequence[HistoryInput],
    current_message: str,
    model_capacity_tokens: int,
    config: ConfigInput,
    *,
    estimator: Optional[TokenEstimator] = None,
    summarizer: Optional[Summarizer] = None,
) -> tuple[list[ContextSegment], CompressionResult]:
    """Blocking variant of build_context()."""
    return asyncio.run(
        build_context(
            system_prompt,
            knowledge_items,
            history,
            current_message,
            model_capacity_tokens,
            config,
            estimator=estimator,
            summarizer=summarizer,
        )
    )


def history_from_segments(segments: Iterable[ContextSegment]) -> list[HistoryTurn]:
    """Turn the conversational part of a built context back into history turns.

    History messages and summaries become turns in context order; the
    system prompt, knowledge and current message are skipped. Feeding the
    result back into a build reproduces the same token total.
    """
    turns = []
    for segment in segments:
        if segment.kind == SegmentKind.HISTORY_MESSAGE:
            turns.append(HistoryTurn(role=segment.role or "user", text=segment.content))
        elif segment.kind == SegmentKind.SUMMARY:
            turns.append(HistoryTurn(role=segment.role or SUMMARY_ROLE, text=segment.content))
    return turns
