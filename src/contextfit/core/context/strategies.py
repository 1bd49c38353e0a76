"""Synchronous compression strategies.

Each strategy is a pure function from a segment sequence and a budget to a
StrategyOutcome. The engine dispatches on CompressionStrategy and chains
outcomes; nothing here mutates its input.

Removal candidates always carry at least one token, so every removal
strictly decreases the total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Collection, Optional, Sequence

from .models import ContextBudget, ContextSegment, SegmentKind, total_tokens

logger = logging.getLogger(__name__)

DROPPABLE_KINDS: tuple[SegmentKind, ...] = (SegmentKind.KNOWLEDGE, SegmentKind.HISTORY_MESSAGE)


@dataclass(frozen=True)
class StrategyOutcome:
    """Segments left after a strategy ran, with what it removed.

    Attributes:
        segments: Remaining segments in context order
        dropped_history: History messages removed outright
        dropped_knowledge: Knowledge segments removed
        folded_history: History messages folded into a summary
        fallback_applied: Whether summarization fell back to the sliding window
        summarizer_error: Why the summarizer was unavailable
    """

    segments: tuple[ContextSegment, ...]
    dropped_history: int = 0
    dropped_knowledge: int = 0
    folded_history: int = 0
    fallback_applied: bool = False
    summarizer_error: Optional[str] = None

    @property
    def dropped_count(self) -> int:
        """Original history messages removed or folded."""
        return self.dropped_history + self.folded_history

    @property
    def total_tokens(self) -> int:
        return total_tokens(self.segments)

    def then(self, other: "StrategyOutcome") -> "StrategyOutcome":
        """Chain a later outcome computed from this outcome's segments."""
        return StrategyOutcome(
            segments=other.segments,
            dropped_history=self.dropped_history + other.dropped_history,
            dropped_knowledge=self.dropped_knowledge + other.dropped_knowledge,
            folded_history=self.folded_history + other.folded_history,
            fallback_applied=self.fallback_applied or other.fallback_applied,
            summarizer_error=self.summarizer_error or other.summarizer_error,
        )


def preserved_orders(segments: Sequence[ContextSegment], preserve_recent_messages: int) -> frozenset[int]:
    """Orders of the newest ``preserve_recent_messages`` history segments."""
    if preserve_recent_messages <= 0:
        return frozenset()
    history = [segment.order for segment in segments if segment.kind == SegmentKind.HISTORY_MESSAGE]
    return frozenset(history[-preserve_recent_messages:])


def _is_removable_history(segment: ContextSegment, preserved: Collection[int]) -> bool:
    return (
        segment.kind == SegmentKind.HISTORY_MESSAGE
        and segment.order not in preserved
        and segment.tokens > 0
    )


def _oldest_removable_index(segments: Sequence[ContextSegment], preserved: Collection[int]) -> Optional[int]:
    """Oldest non-preserved history message, else the oldest summary."""
    history = [
        index for index, segment in enumerate(segments) if _is_removable_history(segment, preserved)
    ]
    if history:
        return min(history, key=lambda index: segments[index].order)
    for index, segment in enumerate(segments):
        if segment.kind == SegmentKind.SUMMARY and segment.tokens > 0:
            return index
    return None


def sliding_window(
    segments: Sequence[ContextSegment],
    budget: ContextBudget,
    *,
    max_drops: Optional[int] = None,
) -> StrategyOutcome:
    """Drop the oldest non-preserved history until under threshold.

    History messages go first, oldest by order; summaries left by an earlier
    summarization pass are removed only once no history message is
    removable. Knowledge and the system prompt are untouched.

    Args:
        segments: Candidate segments in context order
        budget: Budget whose threshold decides when to stop
        max_drops: Stop after this many removals (None = unlimited)

    Returns:
        StrategyOutcome with the remaining segments
    """
    current = list(segments)
    preserved = preserved_orders(current, budget.preserve_recent_messages)
    dropped_history = 0
    removals = 0

    while budget.is_over_threshold(total_tokens(current)):
        if max_drops is not None and removals >= max_drops:
            logger.debug(f"Sliding window stopped at drop cap {max_drops}")
            break
        index = _oldest_removable_index(current, preserved)
        if index is None:
            break
        removed = current.pop(index)
        removals += 1
        if removed.kind == SegmentKind.HISTORY_MESSAGE:
            dropped_history += 1
        logger.debug(
            f"Sliding window dropped {removed.kind.value} #{removed.order} "
            f"({removed.tokens} tokens), total now {total_tokens(current)}"
        )

    return StrategyOutcome(segments=tuple(current), dropped_history=dropped_history)


def drop_low_value(
    segments: Sequence[ContextSegment],
    budget: ContextBudget,
    *,
    kinds: Collection[SegmentKind] = DROPPABLE_KINDS,
) -> StrategyOutcome:
    """Drop the lowest-value droppable segments until under threshold.

    Droppable segments are knowledge and non-preserved history (restricted
    to ``kinds``), removed by value ascending with ties going to the earlier
    position first.

    Args:
        segments: Candidate segments in context order
        budget: Budget whose threshold decides when to stop
        kinds: Segment kinds eligible for dropping

    Returns:
        StrategyOutcome with the remaining segments
    """
    preserved = preserved_orders(segments, budget.preserve_recent_messages)
    candidates = sorted(
        (
            (segment.value, position)
            for position, segment in enumerate(segments)
            if segment.kind in kinds
            and segment.tokens > 0
            and (segment.kind == SegmentKind.KNOWLEDGE or _is_removable_history(segment, preserved))
        ),
    )

    removed_positions: set[int] = set()
    running_total = total_tokens(segments)
    dropped_history = 0
    dropped_knowledge = 0

    for value, position in candidates:
        if not budget.is_over_threshold(running_total):
            break
        segment = segments[position]
        removed_positions.add(position)
        running_total -= segment.tokens
        if segment.kind == SegmentKind.KNOWLEDGE:
            dropped_knowledge += 1
        else:
            dropped_history += 1
        logger.debug(
            f"Dropped {segment.kind.value} #{segment.order} (value={value:.3f}, "
            f"{segment.tokens} tokens), total now {running_total}"
        )

    remaining = tuple(
        segment for position, segment in enumerate(segments) if position not in removed_positions
    )
    return StrategyOutcome(
        segments=remaining,
        dropped_history=dropped_history,
        dropped_knowledge=dropped_knowledge,
    )
