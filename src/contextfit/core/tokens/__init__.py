"""Token utilities for context assembly.

Provides token estimation, budget status classification and model context
limit lookup.

Key Components:
    - TokenEstimator: Pluggable estimator with exact-tokenizer override
    - BudgetTracker / classify(): Safe, Monitor and Critical usage labels
    - get_context_limit(): Resolve a model id to its context window

Usage:
    from contextfit.core.tokens import TokenEstimator, classify, get_context_limit

    estimator = TokenEstimator()
    tokens = estimator.estimate("Hello, world!")

    capacity = get_context_limit("gpt-4o")
    status = classify(tokens_used=640, effective_budget=800)
"""

from .budget import (
    DEFAULT_STATUS_BANDS,
    BudgetStatus,
    BudgetTracker,
    StatusBands,
    classify,
    usage_ratio,
)
from .estimation import (
    COMMON_SCRIPT,
    DEFAULT_CHARS_PER_TOKEN,
    DEFAULT_MULTIPLIER,
    METHOD_EXACT,
    METHOD_HEURISTIC,
    TokenEstimator,
    Tokenizer,
    detect_script,
    estimate_heuristic,
    tiktoken_tokenizer,
)
from .limits import (
    format_context_limit,
    format_token_count,
    get_context_limit,
    is_large_context_model,
)
from .registry import DEFAULT_CONTEXT_LIMITS, LARGE_CONTEXT_THRESHOLD
from .truncation import TRUNCATION_MARKER, truncate_to_tokens

__all__ = [
    # Estimation
    "COMMON_SCRIPT",
    "DEFAULT_CHARS_PER_TOKEN",
    "DEFAULT_MULTIPLIER",
    "METHOD_EXACT",
    "METHOD_HEURISTIC",
    "TokenEstimator",
    "Tokenizer",
    "detect_script",
    "estimate_heuristic",
    "tiktoken_tokenizer",
    # Budget
    "BudgetStatus",
    "BudgetTracker",
    "StatusBands",
    "DEFAULT_STATUS_BANDS",
    "classify",
    "usage_ratio",
    # Limits
    "DEFAULT_CONTEXT_LIMITS",
    "LARGE_CONTEXT_THRESHOLD",
    "get_context_limit",
    "is_large_context_model",
    "format_context_limit",
    "format_token_count",
    # Truncation
    "TRUNCATION_MARKER",
    "truncate_to_tokens",
]
