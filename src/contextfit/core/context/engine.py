"""Compression engine: brings an over-threshold candidate context back under budget.

Dispatches on CompressionStrategy to the synchronous strategies in
``strategies`` and to the summarizer-backed Summarize strategy, then applies
the hard limit. The engine holds no per-call state; one instance can serve
any number of concurrent builds.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from contextfit.config.decorators import log_call
from contextfit.core.errors import SummarizerUnavailableError
from contextfit.core.summarization import Summarizer, request_summary
from contextfit.core.tokens import (
    DEFAULT_STATUS_BANDS,
    StatusBands,
    TokenEstimator,
    classify,
    truncate_to_tokens,
    usage_ratio,
)

from .constants import (
    DEFAULT_SUMMARIZER_TIMEOUT,
    SUMMARY_ROLE,
    WARNING_CONTENT_DROPPED,
    WARNING_CONTENT_SUMMARIZED,
    WARNING_CONTENT_TRUNCATED,
    WARNING_KNOWLEDGE_DROPPED,
    WARNING_PRESERVED_DROPPED,
    WARNING_SUMMARIZER_UNAVAILABLE,
)
from .models import (
    AssemblyState,
    CompressionResult,
    CompressionStrategy,
    ContextBudget,
    ContextSegment,
    SegmentKind,
    total_tokens,
)
from .priority import compute_summary_value
from .strategies import StrategyOutcome, drop_low_value, preserved_orders, sliding_window

logger = logging.getLogger(__name__)


def render_block(segments: Sequence[ContextSegment]) -> str:
    """Render conversational segments as ``role: text`` lines for summarization."""
    return "\n".join(
        f"{segment.role or 'user'}: {segment.content}" for segment in segments
    )


class CompressionEngine:
    """Applies a compression strategy to an assembled candidate context.

    Attributes:
        estimator: Estimator used for summaries and truncated content
        summarizer: Optional Summarizer for the Summarize and Hybrid strategies
        summarizer_timeout: Seconds to wait for each summarizer call
        hybrid_window_max_drops: Cap on sliding-window drops inside Hybrid
            before handing over to Summarize (None = unlimited)
        message_overhead_tokens: Role framing tokens per conversational segment
        status_bands: Safe/Monitor/Critical boundaries for the result label

    Example:
        engine = CompressionEngine(TokenEstimator(), summarizer=ExtractiveSummarizer())
        result = await engine.compress(
            assembled.segments,
            budget,
            CompressionStrategy.HYBRID,
        )
    """

    def __init__(
        self,
        estimator: Optional[TokenEstimator] = None,
        *,
        summarizer: Optional[Summarizer] = None,
        summarizer_timeout: float = DEFAULT_SUMMARIZER_TIMEOUT,
        hybrid_window_max_drops: Optional[int] = None,
        message_overhead_tokens: int = 0,
        status_bands: StatusBands = DEFAULT_STATUS_BANDS,
    ):
        if summarizer_timeout <= 0:
            raise ValueError(f"summarizer_timeout must be positive, got {summarizer_timeout}")
        if hybrid_window_max_drops is not None and hybrid_window_max_drops < 0:
            raise ValueError(f"hybrid_window_max_drops must be non-negative, got {hybrid_window_max_drops}")
        self.estimator = estimator or TokenEstimator()
        self.summarizer = summarizer
        self.summarizer_timeout = summarizer_timeout
        self.hybrid_window_max_drops = hybrid_window_max_drops
        self.message_overhead_tokens = message_overhead_tokens
        self.status_bands = status_bands

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @log_call()
    async def compress(
        self,
        segments: Sequence[ContextSegment],
        budget: ContextBudget,
        strategy: CompressionStrategy,
    ) -> CompressionResult:
        """Bring the candidate context under the compression threshold.

        Under threshold, the segments are returned unchanged with strategy
        NONE. Otherwise the strategy runs to completion and the hard limit
        is enforced; the result is degraded if content beyond the strategy's
        reach had to be cut.

        Args:
            segments: Candidate segments from the assembler
            budget: Validated budget for this call
            strategy: Strategy to apply when over threshold

        Returns:
            CompressionResult describing the kept context
        """
        original = tuple(segments)
        original_tokens = total_tokens(original)

        if not budget.is_over_threshold(original_tokens):
            logger.debug(
                f"Context under threshold ({original_tokens}/{budget.effective_budget} tokens), "
                "no compression needed"
            )
            return self._build_result(
                StrategyOutcome(segments=original),
                budget,
                CompressionStrategy.NONE,
                original_tokens,
                states=(AssemblyState.BUDGET_CHECK, AssemblyState.DONE),
            )

        logger.debug(
            f"Context over threshold ({original_tokens} >= {budget.threshold_tokens} tokens), "
            f"compressing with {strategy.value}"
        )
        outcome = await self._apply_strategy(original, budget, strategy)
        return self._finish(
            outcome,
            budget,
            strategy,
            original_tokens,
            states=(AssemblyState.BUDGET_CHECK, AssemblyState.COMPRESSING, AssemblyState.RECHECK),
        )

    def fit_hard_limit(
        self,
        segments: Sequence[ContextSegment],
        budget: ContextBudget,
    ) -> CompressionResult:
        """Skip compression and only enforce the effective budget.

        Used when compression is disabled: the raw context is returned even
        above threshold, and only a context that exceeds the effective budget
        goes through the degraded hard-truncate path.
        """
        original = tuple(segments)
        return self._finish(
            StrategyOutcome(segments=original),
            budget,
            CompressionStrategy.NONE,
            total_tokens(original),
            states=(AssemblyState.BUDGET_CHECK,),
        )

    # ------------------------------------------------------------------
    # Strategy dispatch
    # ------------------------------------------------------------------

    async def _apply_strategy(
        self,
        segments: tuple[ContextSegment, ...],
        budget: ContextBudget,
        strategy: CompressionStrategy,
    ) -> StrategyOutcome:
        if strategy == CompressionStrategy.SLIDING_WINDOW:
            return sliding_window(segments, budget)
        elif strategy == CompressionStrategy.DROP_LOW_VALUE:
            return drop_low_value(segments, budget)
        elif strategy == CompressionStrategy.SUMMARIZE:
            return await self._summarize(segments, budget)
        elif strategy == CompressionStrategy.HYBRID:
            return await self._hybrid(segments, budget)
        elif strategy == CompressionStrategy.NONE:
            return StrategyOutcome(segments=segments)
        raise ValueError(f"Unknown compression strategy: {strategy}")

    async def _hybrid(
        self,
        segments: tuple[ContextSegment, ...],
        budget: ContextBudget,
    ) -> StrategyOutcome:
        """Low-value knowledge, then the sliding window, then summarization."""
        outcome = drop_low_value(segments, budget, kinds=(SegmentKind.KNOWLEDGE,))
        if budget.is_over_threshold(outcome.total_tokens):
            outcome = outcome.then(
                sliding_window(outcome.segments, budget, max_drops=self.hybrid_window_max_drops)
            )
        if budget.is_over_threshold(outcome.total_tokens):
            outcome = outcome.then(await self._summarize(outcome.segments, budget))
        return outcome

    async def _summarize(
        self,
        segments: tuple[ContextSegment, ...],
        budget: ContextBudget,
    ) -> StrategyOutcome:
        """Fold the oldest non-preserved history into one summary segment.

        The block grows one message at a time from the oldest message; each
        growth requests a fresh summary of the whole block and replaces it in
        the original segment list. On any summarizer failure the best result
        so far is handed to the sliding window.
        """
        preserved = preserved_orders(segments, budget.preserve_recent_messages)
        block_positions = []
        for position, segment in enumerate(segments):
            if segment.kind != SegmentKind.HISTORY_MESSAGE:
                if block_positions:
                    break
                continue
            if segment.order in preserved:
                break
            block_positions.append(position)

        if not block_positions:
            logger.debug("No non-preserved history left to summarize")
            return StrategyOutcome(segments=segments)

        start = block_positions[0]
        overhead = self.message_overhead_tokens
        base_total = total_tokens(segments)
        current = StrategyOutcome(segments=segments)

        for size in range(1, len(block_positions) + 1):
            block = segments[start : start + size]
            block_tokens = total_tokens(block)
            outside_tokens = base_total - block_tokens
            room = budget.threshold_tokens - 1 - outside_tokens - overhead
            max_output_tokens = max(1, min(block_tokens - overhead, room))

            try:
                summary = await request_summary(
                    self.summarizer,
                    render_block(block),
                    max_output_tokens,
                    timeout=self.summarizer_timeout,
                )
            except SummarizerUnavailableError as e:
                logger.warning(f"Summarizer unavailable, falling back to sliding window: {e}")
                fallback = current.then(sliding_window(current.segments, budget))
                return replace(fallback, fallback_applied=True, summarizer_error=str(e))

            summary = truncate_to_tokens(summary, max_output_tokens, self.estimator.estimate)
            summary_segment = ContextSegment.create(
                SegmentKind.SUMMARY,
                summary,
                self.estimator,
                order=block[0].order,
                value=compute_summary_value(segment.value for segment in block),
                role=SUMMARY_ROLE,
                covers=(block[0].order, block[-1].order),
                overhead=overhead,
            )
            current = StrategyOutcome(
                segments=segments[:start] + (summary_segment,) + segments[start + size :],
                folded_history=size,
            )
            logger.debug(
                f"Folded {size} history messages ({block_tokens} tokens) into a "
                f"{summary_segment.tokens}-token summary, total now {current.total_tokens}"
            )
            if not budget.is_over_threshold(current.total_tokens):
                break

        return current

    # ------------------------------------------------------------------
    # Hard limit and result assembly
    # ------------------------------------------------------------------

    def _enforce_hard_limit(
        self,
        outcome: StrategyOutcome,
        budget: ContextBudget,
    ) -> tuple[StrategyOutcome, list[str]]:
        """Degraded terminal path: make the context fit the effective budget.

        Truncates the current message from the end. When not even one token
        of the current message fits, knowledge is dropped first (lowest value
        first), then history and summaries oldest first, preserved messages
        included. The system prompt is never altered.

        Returns:
            The fitted outcome and the warnings describing what was cut
        """
        segments = list(outcome.segments)
        if total_tokens(segments) <= budget.effective_budget:
            return outcome, []

        warnings: list[str] = []
        overhead = self.message_overhead_tokens
        current_index = len(segments) - 1
        current_message = segments[current_index]

        def room_for_current() -> int:
            return budget.effective_budget - (total_tokens(segments) - current_message.tokens)

        dropped_knowledge = 0
        dropped_history = 0
        dropped_preserved = 0
        preserved = preserved_orders(segments, budget.preserve_recent_messages)

        while room_for_current() - overhead <= 0:
            index = self._next_forced_drop(segments)
            if index is None:
                break
            removed = segments.pop(index)
            if removed.kind == SegmentKind.KNOWLEDGE:
                dropped_knowledge += 1
            elif removed.kind == SegmentKind.HISTORY_MESSAGE:
                dropped_history += 1
                if removed.order in preserved:
                    dropped_preserved += 1
            logger.warning(
                f"Hard limit dropped {removed.kind.value} #{removed.order} ({removed.tokens} tokens)"
            )

        if dropped_preserved:
            warnings.append(
                f"{WARNING_PRESERVED_DROPPED}: {dropped_preserved} preserved recent "
                "message(s) dropped to make room for the current message"
            )

        current_index = len(segments) - 1
        if total_tokens(segments) > budget.effective_budget:
            content_budget = room_for_current() - overhead
            truncated = truncate_to_tokens(
                current_message.content,
                content_budget,
                self.estimator.estimate,
            )
            segments[current_index] = current_message.with_content(
                truncated,
                self.estimator,
                overhead=overhead,
            )
            warnings.append(
                f"{WARNING_CONTENT_TRUNCATED}: Current message truncated from "
                f"{current_message.tokens} to {segments[current_index].tokens} tokens"
            )
            logger.warning(
                f"Context still exceeds effective budget {budget.effective_budget}; "
                f"current message truncated to {segments[current_index].tokens} tokens"
            )

        fitted = outcome.then(
            StrategyOutcome(
                segments=tuple(segments),
                dropped_history=dropped_history,
                dropped_knowledge=dropped_knowledge,
            )
        )
        return fitted, warnings

    @staticmethod
    def _next_forced_drop(segments: Sequence[ContextSegment]) -> Optional[int]:
        knowledge = [
            (segment.value, position)
            for position, segment in enumerate(segments)
            if segment.kind == SegmentKind.KNOWLEDGE and segment.tokens > 0
        ]
        if knowledge:
            return min(knowledge)[1]
        for position, segment in enumerate(segments):
            if segment.kind in (SegmentKind.HISTORY_MESSAGE, SegmentKind.SUMMARY) and segment.tokens > 0:
                return position
        return None

    def _finish(
        self,
        outcome: StrategyOutcome,
        budget: ContextBudget,
        strategy: CompressionStrategy,
        original_tokens: int,
        *,
        states: tuple[AssemblyState, ...],
    ) -> CompressionResult:
        fitted, hard_limit_warnings = self._enforce_hard_limit(outcome, budget)
        degraded = bool(hard_limit_warnings)
        return self._build_result(
            fitted,
            budget,
            strategy,
            original_tokens,
            states=states + (AssemblyState.DEGRADED if degraded else AssemblyState.DONE,),
            degraded=degraded,
            extra_warnings=hard_limit_warnings,
        )

    def _build_result(
        self,
        outcome: StrategyOutcome,
        budget: ContextBudget,
        strategy: CompressionStrategy,
        original_tokens: int,
        *,
        states: tuple[AssemblyState, ...],
        degraded: bool = False,
        extra_warnings: Sequence[str] = (),
    ) -> CompressionResult:
        warnings: list[str] = []
        if outcome.dropped_history:
            warnings.append(
                f"{WARNING_CONTENT_DROPPED}: {outcome.dropped_history} history message(s) dropped"
            )
        if outcome.dropped_knowledge:
            warnings.append(
                f"{WARNING_KNOWLEDGE_DROPPED}: {outcome.dropped_knowledge} knowledge item(s) dropped"
            )
        if outcome.folded_history:
            warnings.append(
                f"{WARNING_CONTENT_SUMMARIZED}: {outcome.folded_history} history message(s) "
                "folded into a summary"
            )
        if outcome.fallback_applied:
            warnings.append(
                f"{WARNING_SUMMARIZER_UNAVAILABLE}: {outcome.summarizer_error}; "
                "used sliding window instead"
            )
        warnings.extend(extra_warnings)

        tokens_used = outcome.total_tokens
        ratio = usage_ratio(tokens_used, budget.effective_budget)
        return CompressionResult(
            kept_segments=outcome.segments,
            dropped_count=outcome.dropped_count,
            dropped_knowledge_count=outcome.dropped_knowledge,
            strategy_used=strategy,
            tokens_used=tokens_used,
            original_tokens=original_tokens,
            effective_budget=budget.effective_budget,
            usage_ratio=ratio,
            status=classify(tokens_used, budget.effective_budget, self.status_bands),
            degraded=degraded,
            fallback_applied=outcome.fallback_applied,
            summarizer_error=outcome.summarizer_error,
            warnings=tuple(warnings),
            state_trace=states,
        )
