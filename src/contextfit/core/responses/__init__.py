"""Standard response envelope for contextfit's machine-readable output.

Usage:
    from contextfit.core.responses import success_response, error_response

    response = success_response(data={"tokens_used": 630})
"""

from contextfit.core.responses.builders import error_response, success_response
from contextfit.core.responses.types import (
    RESPONSE_VERSION,
    ErrorCode,
    ErrorType,
    ToolResponse,
)

__all__ = [
    "RESPONSE_VERSION",
    "ErrorCode",
    "ErrorType",
    "ToolResponse",
    "success_response",
    "error_response",
]
