"""Budget usage classification.

Provides:
    - BudgetStatus: Safe / Monitor / Critical observability labels
    - StatusBands: Configurable ratio boundaries for the labels
    - usage_ratio(), classify(): Pure helpers over (tokens_used, effective_budget)
    - BudgetTracker: Binds a ContextBudget to its status bands
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextfit.core.context.models import ContextBudget

logger = logging.getLogger(__name__)


class BudgetStatus(str, Enum):
    """Usage labels shown by token meters.

    The labels are purely for observability; compression is triggered by
    the configured threshold, not by these bands.
    """

    SAFE = "safe"
    MONITOR = "monitor"
    CRITICAL = "critical"


@dataclass(frozen=True)
class StatusBands:
    """Ratio boundaries between the budget status labels.

    Attributes:
        monitor_ratio: Usage ratio at which status becomes MONITOR
        critical_ratio: Usage ratio at which status becomes CRITICAL
    """

    monitor_ratio: float = 0.5
    critical_ratio: float = 0.8

    def __post_init__(self) -> None:
        """Validate band ordering after initialization."""
        if not 0.0 < self.monitor_ratio <= self.critical_ratio:
            raise ValueError(
                f"status bands must satisfy 0 < monitor_ratio <= critical_ratio, "
                f"got monitor={self.monitor_ratio}, critical={self.critical_ratio}"
            )


DEFAULT_STATUS_BANDS = StatusBands()


def usage_ratio(tokens_used: int, effective_budget: int) -> float:
    """Fraction of the effective budget consumed.

    Args:
        tokens_used: Tokens in the assembled context
        effective_budget: Capacity left after the response reservation

    Returns:
        ``tokens_used / effective_budget`` (may exceed 1.0)
    """
    if effective_budget <= 0:
        raise ValueError(f"effective_budget must be positive, got {effective_budget}")
    return tokens_used / effective_budget


def classify(
    tokens_used: int,
    effective_budget: int,
    bands: StatusBands = DEFAULT_STATUS_BANDS,
) -> BudgetStatus:
    """Classify usage against the effective budget.

    Safe below ``monitor_ratio``, Monitor in ``[monitor_ratio, critical_ratio)``,
    Critical at or above ``critical_ratio``.
    """
    ratio = usage_ratio(tokens_used, effective_budget)
    if ratio >= bands.critical_ratio:
        return BudgetStatus.CRITICAL
    if ratio >= bands.monitor_ratio:
        return BudgetStatus.MONITOR
    return BudgetStatus.SAFE


@dataclass(frozen=True)
class BudgetTracker:
    """Answers budget questions for one context budget.

    Attributes:
        budget: The validated context budget
        bands: Status label boundaries

    Example:
        tracker = BudgetTracker(budget)
        if tracker.should_compress(total_tokens):
            ...
    """

    budget: "ContextBudget"
    bands: StatusBands = field(default=DEFAULT_STATUS_BANDS)

    def usage_ratio(self, tokens_used: int) -> float:
        return usage_ratio(tokens_used, self.budget.effective_budget)

    def classify(self, tokens_used: int) -> BudgetStatus:
        return classify(tokens_used, self.budget.effective_budget, self.bands)

    def should_compress(self, tokens_used: int) -> bool:
        """Check whether usage has reached the compression threshold."""
        return self.budget.is_over_threshold(tokens_used)

    def headroom(self, tokens_used: int) -> int:
        """Tokens left before the effective budget is exhausted (may be negative)."""
        return self.budget.effective_budget - tokens_used
