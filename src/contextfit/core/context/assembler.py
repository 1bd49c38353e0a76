"""Candidate context assembly.

Builds the optimistic candidate context: one system prompt segment, one
knowledge segment per retrieved item in caller order, one history segment per
prior turn in chronological order, and the current message last. Nothing is
dropped here; compression happens later in the engine.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from contextfit.core.tokens import TokenEstimator

from .constants import DEFAULT_REFERENCE_SCORE
from .models import (
    AssembledContext,
    ContextSegment,
    HistoryTurn,
    KnowledgeItem,
    SegmentKind,
    total_tokens,
)
from .priority import compute_recency_score, compute_reference_score, compute_segment_value

logger = logging.getLogger(__name__)

KnowledgeInput = Union[KnowledgeItem, tuple, str, Mapping[str, Any]]
HistoryInput = Union[HistoryTurn, tuple, Mapping[str, Any]]


def coerce_knowledge_item(item: KnowledgeInput) -> KnowledgeItem:
    """Normalize a retrieval result into a KnowledgeItem.

    Accepts a KnowledgeItem, a ``(text, reference_score)`` pair, a bare
    string (default reference score) or a mapping with ``text`` and
    optional ``reference_score`` keys.

    Raises:
        TypeError: If the item has an unsupported shape
    """
    if isinstance(item, KnowledgeItem):
        return item
    if isinstance(item, str):
        return KnowledgeItem(text=item)
    if isinstance(item, tuple):
        if len(item) == 1:
            return KnowledgeItem(text=item[0])
        if len(item) == 2:
            return KnowledgeItem(text=item[0], reference_score=item[1])
        raise TypeError(f"knowledge tuples must be (text, reference_score), got {len(item)} fields")
    if isinstance(item, Mapping):
        return KnowledgeItem(
            text=item.get("text", item.get("content", "")),
            reference_score=item.get("reference_score", DEFAULT_REFERENCE_SCORE),
        )
    raise TypeError(f"unsupported knowledge item type: {type(item).__name__}")


def coerce_history_turn(turn: HistoryInput) -> HistoryTurn:
    """Normalize a stored conversation turn into a HistoryTurn.

    Accepts a HistoryTurn, a ``(role, text[, timestamp])`` tuple, or a
    mapping with ``role``, ``text`` (or ``content``), ``timestamp`` and
    ``reference_count`` keys.

    Raises:
        TypeError: If the turn has an unsupported shape
    """
    if isinstance(turn, HistoryTurn):
        return turn
    if isinstance(turn, tuple):
        if len(turn) == 2:
            return HistoryTurn(role=turn[0], text=turn[1])
        if len(turn) == 3:
            return HistoryTurn(role=turn[0], text=turn[1], timestamp=turn[2])
        raise TypeError(f"history tuples must be (role, text[, timestamp]), got {len(turn)} fields")
    if isinstance(turn, Mapping):
        return HistoryTurn(
            role=turn.get("role", "user"),
            text=turn.get("text", turn.get("content", "")),
            timestamp=turn.get("timestamp"),
            reference_count=turn.get("reference_count", 0),
        )
    raise TypeError(f"unsupported history turn type: {type(turn).__name__}")


class ContextAssembler:
    """Orders and counts all candidate segments into one candidate context.

    Attributes:
        estimator: Token estimator used for every segment
        message_overhead_tokens: Role framing tokens added to each
            conversational segment (history and current message)

    Example:
        assembler = ContextAssembler(TokenEstimator())
        assembled = assembler.assemble(
            "You are a helpful assistant.",
            [("Paris is the capital of France.", 0.9)],
            [("user", "Hi"), ("assistant", "Hello! How can I help?")],
            "What is the capital of France?",
        )
        assembled.total_tokens
    """

    def __init__(
        self,
        estimator: Optional[TokenEstimator] = None,
        *,
        message_overhead_tokens: int = 0,
    ):
        if message_overhead_tokens < 0:
            raise ValueError(f"message_overhead_tokens must be non-negative, got {message_overhead_tokens}")
        self.estimator = estimator or TokenEstimator()
        self.message_overhead_tokens = message_overhead_tokens

    def assemble(
        self,
        system_prompt: Optional[str],
        knowledge_items: Iterable[KnowledgeInput],
        history: Sequence[HistoryInput],
        current_message: str,
    ) -> AssembledContext:
        """Build the full candidate context without dropping anything.

        Args:
            system_prompt: System prompt text (None is treated as empty)
            knowledge_items: Retrieved snippets, already relevance-ranked
            history: Prior turns, oldest first
            current_message: The message being answered

        Returns:
            AssembledContext with segments ordered system prompt, knowledge,
            history, current message, and their total token count
        """
        segments: list[ContextSegment] = [
            ContextSegment.create(SegmentKind.SYSTEM_PROMPT, system_prompt or "", self.estimator)
        ]

        for rank, raw_item in enumerate(knowledge_items):
            item = coerce_knowledge_item(raw_item)
            segments.append(
                ContextSegment.create(
                    SegmentKind.KNOWLEDGE,
                    item.text,
                    self.estimator,
                    order=rank,
                    value=compute_segment_value(
                        SegmentKind.KNOWLEDGE,
                        reference_score=item.reference_score,
                    ),
                )
            )

        turns = [coerce_history_turn(turn) for turn in history]
        for position, turn in enumerate(turns):
            segments.append(
                ContextSegment.create(
                    SegmentKind.HISTORY_MESSAGE,
                    turn.text,
                    self.estimator,
                    order=position,
                    value=compute_segment_value(
                        SegmentKind.HISTORY_MESSAGE,
                        recency_score=compute_recency_score(position, len(turns)),
                        reference_score=compute_reference_score(turn.reference_count),
                        role=turn.role,
                        content=turn.text,
                    ),
                    role=turn.role,
                    overhead=self.message_overhead_tokens,
                )
            )

        segments.append(
            ContextSegment.create(
                SegmentKind.CURRENT_MESSAGE,
                current_message,
                self.estimator,
                order=len(turns),
                role="user",
                overhead=self.message_overhead_tokens,
            )
        )

        total = total_tokens(segments)
        logger.debug(
            f"Assembled {len(segments)} segments ({len(turns)} history) totalling {total} tokens"
        )
        return AssembledContext(segments=tuple(segments), total_tokens=total)


def assemble(
    system_prompt: Optional[str],
    knowledge_items: Iterable[KnowledgeInput],
    history: Sequence[HistoryInput],
    current_message: str,
    estimator: Optional[TokenEstimator] = None,
) -> AssembledContext:
    """Assemble a candidate context with a one-off ContextAssembler."""
    return ContextAssembler(estimator).assemble(system_prompt, knowledge_items, history, current_message)
