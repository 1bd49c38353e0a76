"""Token-bounded truncation.

Provides:
    - truncate_to_tokens(): Keep the longest prefix of a text that fits a
      token budget, marking the cut when the marker itself fits
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Truncation marker for content that has been truncated
TRUNCATION_MARKER = " [... truncated]"


def _longest_fitting_prefix(
    text: str,
    max_tokens: int,
    estimate: Callable[[str], int],
    suffix: str,
    min_chars: int,
) -> Optional[str]:
    """Binary search the longest ``text[:n] + suffix`` within max_tokens."""
    lo, hi = min_chars, len(text)
    best: Optional[str] = None
    while lo <= hi:
        mid = (lo + hi) // 2
        candidate = text[:mid].rstrip() + suffix if mid < len(text) else text
        if estimate(candidate) <= max_tokens:
            best = candidate
            lo = mid + 1
        else:
            hi = mid - 1
    return best


def truncate_to_tokens(
    text: str,
    max_tokens: int,
    estimate: Callable[[str], int],
    *,
    marker: str = TRUNCATION_MARKER,
) -> str:
    """Truncate text from the end so it fits within max_tokens.

    Preserves as much of the start as fits. The marker is appended only when
    at least one character of the original survives alongside it; otherwise
    the bare prefix is returned. Never raises.

    Args:
        text: Text to truncate
        max_tokens: Token budget for the result
        estimate: Token estimator used to measure candidates
        marker: Suffix signalling the cut (default " [... truncated]")

    Returns:
        The original text if it already fits, else a fitting prefix
        (possibly the empty string)
    """
    if estimate(text) <= max_tokens:
        return text
    if max_tokens <= 0:
        return ""

    if marker:
        marked = _longest_fitting_prefix(text, max_tokens, estimate, marker, min_chars=1)
        if marked is not None:
            return marked

    plain = _longest_fitting_prefix(text, max_tokens, estimate, "", min_chars=0)
    if plain is None:
        logger.debug("No prefix fits the token budget, returning empty text")
        return ""
    return plain
