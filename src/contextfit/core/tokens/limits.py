"""Model context limit resolution and display helpers.

Provides:
    - get_context_limit(): Resolve a model id to its context window
    - is_large_context_model(): Whether a model's window exceeds 32k tokens
    - format_context_limit(), format_token_count(): Compact display strings
"""

import logging
from typing import Mapping, Optional

from .registry import DEFAULT_CONTEXT_LIMIT_KEY, DEFAULT_CONTEXT_LIMITS, LARGE_CONTEXT_THRESHOLD

logger = logging.getLogger(__name__)


def get_context_limit(
    model_id: Optional[str],
    *,
    overrides: Optional[Mapping[str, int]] = None,
) -> int:
    """Get the context window for a model.

    Resolution order:
    1. Exact match (case-insensitive) in overrides, then the registry
    2. Longest registry key contained in the model id
       (e.g. "gpt-4-turbo-2024-04-09" matches "gpt-4-turbo")
    3. The registry "default" entry

    Args:
        model_id: Model identifier, may carry version suffixes
        overrides: Optional extra model limits taking precedence

    Returns:
        Context window size in tokens

    Example:
        get_context_limit("claude-3.5-sonnet-20241022")  # 200_000
    """
    limits = dict(DEFAULT_CONTEXT_LIMITS)
    if overrides:
        limits.update({key.lower(): value for key, value in overrides.items()})

    if not model_id:
        return limits[DEFAULT_CONTEXT_LIMIT_KEY]

    normalized = model_id.strip().lower()
    if normalized in limits:
        return limits[normalized]

    # Longest key first so "gpt-4-turbo" wins over "gpt-4"
    candidates = sorted(
        (key for key in limits if key != DEFAULT_CONTEXT_LIMIT_KEY),
        key=lambda key: (-len(key), key),
    )
    for key in candidates:
        if key in normalized:
            logger.debug(f"Resolved context limit for {model_id} via partial match '{key}'")
            return limits[key]

    logger.debug(f"No context limit registered for {model_id}, using default")
    return limits[DEFAULT_CONTEXT_LIMIT_KEY]


def is_large_context_model(model_id: Optional[str]) -> bool:
    """Check if a model has a large context window (> 32k tokens)."""
    return get_context_limit(model_id) > LARGE_CONTEXT_THRESHOLD


def format_context_limit(limit: int) -> str:
    """Format a context window size for display ("1.0M", "128k", "512")."""
    if limit >= 1_000_000:
        return f"{limit / 1_000_000:.1f}M"
    if limit >= 1_000:
        return f"{limit / 1_000:.0f}k"
    return str(limit)


def format_token_count(tokens: int) -> str:
    """Format a token count for display ("1.2k", "640")."""
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}k"
    return str(tokens)
