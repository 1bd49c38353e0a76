"""Core context assembly, token and summarization operations for contextfit."""

from contextfit.core.context import (
    CompressionConfig,
    CompressionResult,
    CompressionStrategy,
    ContextBuilder,
    ContextSegment,
    SegmentKind,
    build_context,
    build_context_sync,
)
from contextfit.core.tokens import BudgetStatus, TokenEstimator, get_context_limit

__all__ = [
    "CompressionConfig",
    "CompressionResult",
    "CompressionStrategy",
    "ContextBuilder",
    "ContextSegment",
    "SegmentKind",
    "build_context",
    "build_context_sync",
    "BudgetStatus",
    "TokenEstimator",
    "get_context_limit",
]
