"""Context assembly and compression under a token budget.

Assembles the system prompt, retrieved knowledge, prior turns and the current
message into one candidate context, then compresses it with a configured
strategy when it crosses the threshold.

Key Components:
    - ContextBuilder / build_context(): The facade callers use
    - ContextAssembler: Builds the optimistic candidate context
    - CompressionEngine: Sliding window, drop-low-value, summarize, hybrid,
      and the degraded hard-truncate path
    - ContextSegment, ContextBudget, CompressionResult: Data models

Usage:
    from contextfit.core.context import build_context

    segments, result = await build_context(
        system_prompt="You are a helpful assistant.",
        knowledge_items=[],
        history=[("user", "Hi"), ("assistant", "Hello!")],
        current_message="Summarize our chat.",
        model_capacity_tokens=8192,
        config={"threshold_percent": 80, "preserve_recent_messages": 4,
                "reserved_for_response_tokens": 1024},
    )
"""

from .assembler import ContextAssembler, assemble, coerce_history_turn, coerce_knowledge_item
from .builder import (
    BuildResult,
    ContextBuilder,
    build_context,
    build_context_sync,
    history_from_segments,
)
from .config import DEFAULT_COMPRESSION_SETTINGS, CompressionConfig
from .engine import CompressionEngine, render_block
from .models import (
    AssembledContext,
    AssemblyState,
    CompressionResult,
    CompressionStrategy,
    ContextBudget,
    ContextSegment,
    HistoryTurn,
    KnowledgeItem,
    SegmentKind,
    TokenBreakdown,
    total_tokens,
)
from .priority import (
    compute_recency_score,
    compute_reference_score,
    compute_segment_value,
    is_low_value_message,
)
from .strategies import StrategyOutcome, drop_low_value, preserved_orders, sliding_window

__all__ = [
    # Facade
    "BuildResult",
    "ContextBuilder",
    "build_context",
    "build_context_sync",
    "history_from_segments",
    # Configuration
    "CompressionConfig",
    "DEFAULT_COMPRESSION_SETTINGS",
    # Assembly
    "ContextAssembler",
    "assemble",
    "coerce_history_turn",
    "coerce_knowledge_item",
    # Compression
    "CompressionEngine",
    "StrategyOutcome",
    "drop_low_value",
    "preserved_orders",
    "render_block",
    "sliding_window",
    # Models
    "AssembledContext",
    "AssemblyState",
    "CompressionResult",
    "CompressionStrategy",
    "ContextBudget",
    "ContextSegment",
    "HistoryTurn",
    "KnowledgeItem",
    "SegmentKind",
    "TokenBreakdown",
    "total_tokens",
    # Value scoring
    "compute_recency_score",
    "compute_reference_score",
    "compute_segment_value",
    "is_low_value_message",
]
