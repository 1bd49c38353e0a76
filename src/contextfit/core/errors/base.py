"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exception types to (ErrorCode, ErrorType) tuples,
enabling consistent error response generation across the CLI.

Usage:
    from contextfit.core.errors.base import error_to_response

    try:
        do_something()
    except Exception as e:
        result = error_to_response(e)
        if result is not None:
            return result
        raise  # Unknown error, re-raise
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Dict, Optional, Tuple, Type

from contextfit.core.errors.context import (
    ConfigurationError,
    SummarizationError,
    SummarizerUnavailableError,
)
from contextfit.core.responses import ErrorCode, ErrorType, error_response

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    ConfigurationError: (ErrorCode.CONFIGURATION_ERROR, ErrorType.VALIDATION),
    SummarizationError: (ErrorCode.AI_PROVIDER_ERROR, ErrorType.AI_PROVIDER),
    SummarizerUnavailableError: (ErrorCode.UNAVAILABLE, ErrorType.UNAVAILABLE),
}


def error_to_response(exc: Exception) -> Optional[dict]:
    """Convert a known exception to a standard error_response dict, or None if unknown.

    Looks up the exception's *exact* type in ERROR_MAPPINGS.

    Args:
        exc: The exception to convert.

    Returns:
        A dict suitable for JSON output, or None if the exception type
        is not registered in ERROR_MAPPINGS.
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    code, error_type = mapping
    details = exc.to_dict() if isinstance(exc, ConfigurationError) else None
    return asdict(error_response(str(exc), error_code=code, error_type=error_type, details=details))
