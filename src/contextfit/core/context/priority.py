"""Value scoring for context segments.

Provides functions for computing the value score that value-based dropping
uses to decide what to remove first. Scores combine a per-kind base weight
with recency and explicit reference signals, and penalize short
acknowledgement turns.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from .constants import (
    LOW_VALUE_MAX_CHARS,
    LOW_VALUE_PENALTY,
    REFERENCE_SATURATION,
    VALUE_WEIGHT_RECENCY,
    VALUE_WEIGHT_REFERENCE,
)
from .models import SegmentKind

# Per-kind base weight applied before the recency/reference signals
KIND_BASE_WEIGHTS: dict[SegmentKind, float] = {
    SegmentKind.SYSTEM_PROMPT: 1.0,
    SegmentKind.CURRENT_MESSAGE: 1.0,
    SegmentKind.KNOWLEDGE: 1.0,
    SegmentKind.HISTORY_MESSAGE: 1.0,
    SegmentKind.SUMMARY: 0.9,
}

# Short acknowledgements that carry little information
LOW_VALUE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(ok|okay|sure|thanks|thank you|got it|understood|right|yes|no|yep|nope|k|kk)\.?$", re.IGNORECASE),
    re.compile(r"^(sounds good|perfect|great|awesome|cool|nice|good|fine|alright)\.?$", re.IGNORECASE),
    re.compile(r"^(i see|ah|oh|hmm|hm|mhm|uh huh)\.?$", re.IGNORECASE),
    re.compile("^(\U0001F44D|\U0001F44C|✅|\U0001F64F|\U0001F60A|\U0001F914|\U0001F4AF)$"),
)


def is_low_value_message(text: str) -> bool:
    """Check if a message is a short acknowledgement ("ok", "thanks", ...).

    Example:
        is_low_value_message("Thanks!")  # False, punctuation other than "." disqualifies
        is_low_value_message("got it.")  # True
    """
    trimmed = text.strip()
    if len(trimmed) > LOW_VALUE_MAX_CHARS:
        return False
    return any(pattern.match(trimmed) for pattern in LOW_VALUE_PATTERNS)


def compute_recency_score(position: int, count: int) -> float:
    """Linear recency from 1/count (oldest) to 1.0 (newest).

    Args:
        position: Zero-based position in conversation time
        count: Number of history messages

    Raises:
        ValueError: If position is outside [0, count)
    """
    if count <= 0 or not 0 <= position < count:
        raise ValueError(f"position must be in [0, {count}), got {position}")
    return (position + 1) / count


def compute_reference_score(reference_count: int) -> float:
    """Saturating reference signal: 0 references -> 0.0, 5 or more -> 1.0."""
    if reference_count < 0:
        raise ValueError(f"reference_count must be non-negative, got {reference_count}")
    return min(1.0, reference_count / REFERENCE_SATURATION)


def compute_segment_value(
    kind: SegmentKind,
    *,
    recency_score: float = 1.0,
    reference_score: float = 0.0,
    role: Optional[str] = None,
    content: str = "",
) -> float:
    """Compute the value score of a segment.

    - System prompt and current message: always 1.0
    - Knowledge: base weight x the retriever's reference score
    - History: base weight x (60% recency + 40% reference), multiplied by
      LOW_VALUE_PENALTY for short user acknowledgements

    Args:
        kind: Segment kind
        recency_score: Recency signal in [0.0, 1.0] (history only)
        reference_score: Reference/usage signal in [0.0, 1.0]
        role: Speaker role (history only)
        content: Segment text, inspected for acknowledgements

    Returns:
        Value between 0.0 and 1.0, higher = keep longer

    Raises:
        ValueError: If recency_score or reference_score is outside [0.0, 1.0]
    """
    if kind.is_protected:
        return 1.0
    if not 0.0 <= recency_score <= 1.0:
        raise ValueError(f"recency_score must be in [0.0, 1.0], got {recency_score}")
    if not 0.0 <= reference_score <= 1.0:
        raise ValueError(f"reference_score must be in [0.0, 1.0], got {reference_score}")

    base = KIND_BASE_WEIGHTS[kind]
    if kind == SegmentKind.KNOWLEDGE:
        value = base * reference_score
    else:
        value = base * (VALUE_WEIGHT_RECENCY * recency_score + VALUE_WEIGHT_REFERENCE * reference_score)
        if role == "user" and is_low_value_message(content):
            value *= LOW_VALUE_PENALTY

    return max(0.0, min(1.0, value))


def compute_summary_value(covered_values: Iterable[float]) -> float:
    """Value of a summary: the summary base weight x its best covered message."""
    best = max(covered_values, default=0.0)
    return max(0.0, min(1.0, KIND_BASE_WEIGHTS[SegmentKind.SUMMARY] * best))
