"""Unified error hierarchy for contextfit.

Usage:
    from contextfit.core.errors import ConfigurationError, error_to_response
"""

from contextfit.core.errors.base import ERROR_MAPPINGS, error_to_response
from contextfit.core.errors.context import (
    ConfigurationError,
    SummarizationError,
    SummarizerUnavailableError,
)

__all__ = [
    "ERROR_MAPPINGS",
    "error_to_response",
    "ConfigurationError",
    "SummarizationError",
    "SummarizerUnavailableError",
]
