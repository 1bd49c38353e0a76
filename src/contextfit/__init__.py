"""contextfit: token-budgeted context assembly and compression for LLM calls."""

from contextfit.config import _PACKAGE_VERSION as __version__
from contextfit.core.context import (
    BuildResult,
    CompressionConfig,
    CompressionResult,
    CompressionStrategy,
    ContextBudget,
    ContextBuilder,
    ContextSegment,
    HistoryTurn,
    KnowledgeItem,
    SegmentKind,
    build_context,
    build_context_sync,
)
from contextfit.core.errors import ConfigurationError, SummarizerUnavailableError
from contextfit.core.summarization import (
    CallableSummarizer,
    ChatCompletionSummarizer,
    ExtractiveSummarizer,
    Summarizer,
)
from contextfit.core.tokens import BudgetStatus, TokenEstimator, get_context_limit

__all__ = [
    "__version__",
    "BuildResult",
    "CompressionConfig",
    "CompressionResult",
    "CompressionStrategy",
    "ContextBudget",
    "ContextBuilder",
    "ContextSegment",
    "HistoryTurn",
    "KnowledgeItem",
    "SegmentKind",
    "build_context",
    "build_context_sync",
    "ConfigurationError",
    "SummarizerUnavailableError",
    "CallableSummarizer",
    "ChatCompletionSummarizer",
    "ExtractiveSummarizer",
    "Summarizer",
    "BudgetStatus",
    "TokenEstimator",
    "get_context_limit",
]
