"""Data models for context assembly and compression.

Provides segment kinds, the token-counted ContextSegment, caller-facing input
records, the validated ContextBudget, the compression strategy variant and
the CompressionResult returned to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contextfit.core.errors import ConfigurationError
from contextfit.core.tokens import BudgetStatus, TokenEstimator

from .constants import DEFAULT_REFERENCE_SCORE


class SegmentKind(str, Enum):
    """Kinds of content competing for the context window."""

    SYSTEM_PROMPT = "system_prompt"
    KNOWLEDGE = "knowledge"
    HISTORY_MESSAGE = "history_message"
    CURRENT_MESSAGE = "current_message"
    SUMMARY = "summary"

    @property
    def is_protected(self) -> bool:
        """System prompt and current message are never dropped."""
        return self in (SegmentKind.SYSTEM_PROMPT, SegmentKind.CURRENT_MESSAGE)

    @property
    def is_conversational(self) -> bool:
        """Kinds that occupy a slot in conversation time."""
        return self in (
            SegmentKind.HISTORY_MESSAGE,
            SegmentKind.SUMMARY,
            SegmentKind.CURRENT_MESSAGE,
        )


class CompressionStrategy(str, Enum):
    """Compression strategies, dispatched by the engine as a tagged variant.

    Strategies:
        NONE: No compression was applied
        SLIDING_WINDOW: Drop the oldest non-preserved history first
        DROP_LOW_VALUE: Drop the lowest-value knowledge and history first
        SUMMARIZE: Fold the oldest history into a summary
        HYBRID: Low-value knowledge, then sliding window, then summarize
    """

    NONE = "none"
    SLIDING_WINDOW = "sliding_window"
    DROP_LOW_VALUE = "drop_low_value"
    SUMMARIZE = "summarize"
    HYBRID = "hybrid"


class AssemblyState(str, Enum):
    """States of one assembly and compression call."""

    COLLECTING = "collecting"
    BUDGET_CHECK = "budget_check"
    COMPRESSING = "compressing"
    RECHECK = "recheck"
    DONE = "done"
    DEGRADED = "degraded"


# =============================================================================
# Caller inputs
# =============================================================================


class KnowledgeItem(BaseModel):
    """A retrieved knowledge snippet, already ranked by the retriever."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Snippet content")
    reference_score: float = Field(
        default=DEFAULT_REFERENCE_SCORE,
        description="Relevance/usage score, clamped to [0, 1]",
    )

    @field_validator("reference_score", mode="before")
    @classmethod
    def _clamp_reference_score(cls, value: Any) -> float:
        score = float(value)
        if score != score:  # NaN
            return 0.0
        return max(0.0, min(1.0, score))


class HistoryTurn(BaseModel):
    """A prior conversation turn supplied by the conversation store."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(default="user", description="Speaker role (user, assistant, ...)")
    text: str = Field(..., description="Turn content")
    timestamp: Optional[datetime] = Field(default=None, description="When the turn was sent")
    reference_count: int = Field(default=0, ge=0, description="Times later turns referenced this one")


# =============================================================================
# Segments
# =============================================================================


@dataclass(frozen=True)
class ContextSegment:
    """A typed, token-counted unit of context content.

    Token counts are computed once at creation; segments are never edited
    in place. Use ContextSegment.create() rather than the constructor so the
    count comes from the estimator.

    Attributes:
        kind: What the segment holds
        content: Text content
        tokens: Token count (content estimate plus per-message overhead)
        order: Conversation position for history/current/summary, rank for knowledge
        value: Score in [0, 1] used by value-based dropping
        role: Speaker role for conversational segments
        covers: Inclusive (first, last) history orders folded into a summary
        truncated: Whether the degraded path cut this segment's content
    """

    kind: SegmentKind
    content: str
    tokens: int
    order: int = 0
    value: float = 1.0
    role: Optional[str] = None
    covers: Optional[tuple[int, int]] = None
    truncated: bool = False

    def __post_init__(self) -> None:
        """Validate segment invariants after initialization."""
        if self.tokens < 0:
            raise ValueError(f"tokens must be non-negative, got {self.tokens}")
        if not 0.0 <= self.value <= 1.0:
            raise ValueError(f"value must be in [0.0, 1.0], got {self.value}")
        if self.kind.is_protected and self.value != 1.0:
            raise ValueError(f"{self.kind.value} segments always have value 1.0")
        if self.covers is not None and self.covers[0] > self.covers[1]:
            raise ValueError(f"covers must be an ordered range, got {self.covers}")

    @classmethod
    def create(
        cls,
        kind: SegmentKind,
        content: str,
        estimator: TokenEstimator,
        *,
        order: int = 0,
        value: float = 1.0,
        role: Optional[str] = None,
        covers: Optional[tuple[int, int]] = None,
        overhead: int = 0,
    ) -> "ContextSegment":
        """Create a segment, computing its token count through the estimator."""
        return cls(
            kind=kind,
            content=content,
            tokens=estimator.estimate(content) + overhead,
            order=order,
            value=1.0 if kind.is_protected else value,
            role=role,
            covers=covers,
        )

    def with_content(
        self,
        content: str,
        estimator: TokenEstimator,
        *,
        overhead: int = 0,
    ) -> "ContextSegment":
        """Return a truncated copy carrying new content and a fresh token count."""
        return replace(
            self,
            content=content,
            tokens=estimator.estimate(content) + overhead,
            truncated=True,
        )

    @property
    def folded_count(self) -> int:
        """Number of history messages a summary segment replaces."""
        if self.covers is None:
            return 0
        return self.covers[1] - self.covers[0] + 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "content": self.content,
            "tokens": self.tokens,
            "order": self.order,
            "value": round(self.value, 4),
        }
        if self.role is not None:
            data["role"] = self.role
        if self.covers is not None:
            data["covers"] = list(self.covers)
        if self.truncated:
            data["truncated"] = True
        return data


def total_tokens(segments: "tuple[ContextSegment, ...] | list[ContextSegment]") -> int:
    """Sum of segment token counts."""
    return sum(segment.tokens for segment in segments)


@dataclass(frozen=True)
class AssembledContext:
    """The optimistic candidate context, before any compression."""

    segments: tuple[ContextSegment, ...]
    total_tokens: int


# =============================================================================
# Budget
# =============================================================================


@dataclass(frozen=True)
class ContextBudget:
    """Token budget for one assembly call.

    Attributes:
        model_capacity_tokens: Context window of the target model
        reserved_for_response_tokens: Tokens held back for the model's output
        threshold_percent: Usage percentage (1-100) at which compression triggers
        preserve_recent_messages: Newest history messages never dropped or summarized

    Raises:
        ConfigurationError: If any value is out of range or the effective
            budget is not positive

    Example:
        budget = ContextBudget(
            model_capacity_tokens=1000,
            reserved_for_response_tokens=200,
            threshold_percent=80,
            preserve_recent_messages=3,
        )
        budget.effective_budget  # 800
    """

    model_capacity_tokens: int
    reserved_for_response_tokens: int
    threshold_percent: int
    preserve_recent_messages: int

    def __post_init__(self) -> None:
        """Validate budget parameters after initialization."""
        for name in (
            "model_capacity_tokens",
            "reserved_for_response_tokens",
            "threshold_percent",
            "preserve_recent_messages",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(
                    f"{name} must be an integer, got {value!r}",
                    field=name,
                    value=value,
                )
        if not 1 <= self.threshold_percent <= 100:
            raise ConfigurationError(
                f"threshold_percent must be in [1, 100], got {self.threshold_percent}",
                field="threshold_percent",
                value=self.threshold_percent,
            )
        if self.preserve_recent_messages < 0:
            raise ConfigurationError(
                f"preserve_recent_messages must be non-negative, got {self.preserve_recent_messages}",
                field="preserve_recent_messages",
                value=self.preserve_recent_messages,
            )
        if self.reserved_for_response_tokens < 0:
            raise ConfigurationError(
                f"reserved_for_response_tokens must be non-negative, got {self.reserved_for_response_tokens}",
                field="reserved_for_response_tokens",
                value=self.reserved_for_response_tokens,
            )
        if self.effective_budget <= 0:
            raise ConfigurationError(
                f"effective budget must be positive: model capacity {self.model_capacity_tokens} "
                f"minus reserved {self.reserved_for_response_tokens} is {self.effective_budget}",
                field="model_capacity_tokens",
                value=self.model_capacity_tokens,
            )

    @property
    def effective_budget(self) -> int:
        """Capacity left for input after the response reservation."""
        return self.model_capacity_tokens - self.reserved_for_response_tokens

    @property
    def threshold_tokens(self) -> int:
        """Smallest token total that triggers compression."""
        return -(-self.threshold_percent * self.effective_budget // 100)

    def is_over_threshold(self, tokens: int) -> bool:
        """Check ``tokens / effective_budget >= threshold_percent / 100`` exactly."""
        return tokens * 100 >= self.threshold_percent * self.effective_budget

    def exceeds_budget(self, tokens: int) -> bool:
        return tokens > self.effective_budget


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class TokenBreakdown:
    """Token usage per content category, for token meters."""

    system_prompt: int = 0
    knowledge: int = 0
    history: int = 0
    summary: int = 0
    current_message: int = 0

    @property
    def total(self) -> int:
        return self.system_prompt + self.knowledge + self.history + self.summary + self.current_message

    @classmethod
    def from_segments(cls, segments: "tuple[ContextSegment, ...] | list[ContextSegment]") -> "TokenBreakdown":
        counts = {kind: 0 for kind in SegmentKind}
        for segment in segments:
            counts[segment.kind] += segment.tokens
        return cls(
            system_prompt=counts[SegmentKind.SYSTEM_PROMPT],
            knowledge=counts[SegmentKind.KNOWLEDGE],
            history=counts[SegmentKind.HISTORY_MESSAGE],
            summary=counts[SegmentKind.SUMMARY],
            current_message=counts[SegmentKind.CURRENT_MESSAGE],
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "system_prompt": self.system_prompt,
            "knowledge": self.knowledge,
            "history": self.history,
            "summary": self.summary,
            "current_message": self.current_message,
            "total": self.total,
        }


@dataclass(frozen=True)
class CompressionResult:
    """Result of one assembly and compression call.

    Attributes:
        kept_segments: Final ordered segments (system prompt, knowledge,
            history and summaries in time order, current message)
        dropped_count: Original history messages removed or folded into a summary
        strategy_used: Strategy that ran (NONE when under threshold or disabled)
        tokens_used: Total tokens of kept_segments
        original_tokens: Total tokens of the assembled candidate context
        effective_budget: Model capacity minus the response reservation
        usage_ratio: tokens_used / effective_budget
        status: Safe / Monitor / Critical label for tokens_used
        degraded: True only when the current message had to be truncated
        dropped_knowledge_count: Knowledge segments removed
        fallback_applied: Whether Summarize fell back to the sliding window
        summarizer_error: Why the summarizer was unavailable, if it was
        warnings: Coded, human-readable notes about what was changed
        state_trace: States visited during the call

    Example:
        result = await builder.build(...)
        if result.degraded:
            print("Current message truncated to fit")
        print(f"{result.percentage_used}% of context used")
    """

    kept_segments: tuple[ContextSegment, ...]
    dropped_count: int
    strategy_used: CompressionStrategy
    tokens_used: int
    original_tokens: int
    effective_budget: int
    usage_ratio: float
    status: BudgetStatus
    degraded: bool = False
    dropped_knowledge_count: int = 0
    fallback_applied: bool = False
    summarizer_error: Optional[str] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)
    state_trace: tuple[AssemblyState, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Validate result consistency."""
        if self.dropped_count < 0:
            raise ValueError(f"dropped_count must be non-negative, got {self.dropped_count}")
        if self.tokens_used < 0:
            raise ValueError(f"tokens_used must be non-negative, got {self.tokens_used}")

    @property
    def compression_applied(self) -> bool:
        """Whether any content was dropped, folded or truncated."""
        return self.tokens_used != self.original_tokens or self.dropped_count > 0 or self.degraded

    @property
    def percentage_used(self) -> int:
        """Rounded usage percentage, capped at 100, for token meters."""
        return min(round(self.usage_ratio * 100), 100)

    @property
    def final_state(self) -> Optional[AssemblyState]:
        return self.state_trace[-1] if self.state_trace else None

    def breakdown(self) -> TokenBreakdown:
        return TokenBreakdown.from_segments(self.kept_segments)

    def with_state_prefix(self, *states: AssemblyState) -> "CompressionResult":
        """Return a copy whose state trace starts with the given states."""
        return replace(self, state_trace=tuple(states) + self.state_trace)

    def to_dict(self, *, include_content: bool = True) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Args:
            include_content: Include segment text (set False for metadata only)
        """
        segments = [segment.to_dict() for segment in self.kept_segments]
        if not include_content:
            for segment in segments:
                segment.pop("content", None)
        return {
            "kept_segments": segments,
            "dropped_count": self.dropped_count,
            "dropped_knowledge_count": self.dropped_knowledge_count,
            "strategy_used": self.strategy_used.value,
            "tokens_used": self.tokens_used,
            "original_tokens": self.original_tokens,
            "effective_budget": self.effective_budget,
            "usage_ratio": round(self.usage_ratio, 4),
            "percentage_used": self.percentage_used,
            "status": self.status.value,
            "degraded": self.degraded,
            "fallback_applied": self.fallback_applied,
            "summarizer_error": self.summarizer_error,
            "warnings": list(self.warnings),
            "state_trace": [state.value for state in self.state_trace],
            "breakdown": self.breakdown().to_dict(),
        }
