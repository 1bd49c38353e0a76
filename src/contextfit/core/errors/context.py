"""Context assembly error classes.

Only configuration problems ever escape a build call. Summarizer failures are
raised inside the summarization layer and recovered by the compression engine;
estimation failures and degraded budgets are not exceptions at all.
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ValueError):
    """Raised when budget, threshold or preserve settings are invalid.

    Raised eagerly, before any assembly work is performed.

    Attributes:
        field: Name of the offending setting, if known
        value: The rejected value, if known
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
    ):
        self.field = field
        self.value = value
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_type": "configuration_error",
            "field": self.field,
            "value": self.value,
            "message": str(self),
        }


# =============================================================================
# Summarization Errors
# =============================================================================


class SummarizationError(Exception):
    """Base exception for summarization errors."""

    pass


class SummarizerUnavailableError(SummarizationError):
    """Raised when the summarizer cannot produce a summary for a block.

    Covers a missing summarizer, a timeout, an error raised by the
    summarizer, and output that is not text. The compression engine
    recovers from it by switching to the sliding window.
    """

    def __init__(self, reason: str, *, cause: Optional[BaseException] = None):
        self.reason = reason
        self.cause = cause
        message = reason if cause is None else f"{reason}: {cause!r}"
        super().__init__(message)
