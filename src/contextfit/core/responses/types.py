"""
Core types for CLI response contracts.

Defines the fundamental building blocks: error codes, error types,
the standard ToolResponse dataclass, and the internal _build_meta() helper.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

RESPONSE_VERSION = "response-v2"


class ErrorCode(str, Enum):
    """Machine-readable error codes for CLI responses.

    Codes follow SCREAMING_SNAKE_CASE convention.
    """

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAVAILABLE = "UNAVAILABLE"

    # AI/LLM Provider errors
    AI_PROVIDER_TIMEOUT = "AI_PROVIDER_TIMEOUT"
    AI_PROVIDER_ERROR = "AI_PROVIDER_ERROR"


class ErrorType(str, Enum):
    """Error categories for routing and client-side handling."""

    VALIDATION = "validation"  # 400 - No retry, fix input
    NOT_FOUND = "not_found"  # 404 - No retry
    INTERNAL = "internal"  # 500 - Yes, with backoff
    UNAVAILABLE = "unavailable"  # 503 - Yes, with backoff
    AI_PROVIDER = "ai_provider"  # AI-specific - Retry varies by error


@dataclass
class ToolResponse:
    """
    Standard response structure for CLI operations.

    Attributes:
        success: Whether the operation completed successfully
        data: The primary payload (operation-specific structured data)
        error: Error message if success is False, None otherwise
        meta: Response metadata including version identifier
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})


def _build_meta(
    *,
    warnings: Optional[Sequence[str]] = None,
    content_fidelity: Optional[str] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Construct a metadata payload that always includes the response version.

    Args:
        warnings: Non-fatal issues to surface (string array)
        content_fidelity: Response completeness level (full|partial|degraded)
        extra: Arbitrary extra metadata to merge
    """
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}

    if warnings:
        meta["warnings"] = list(warnings)
    if content_fidelity:
        meta["content_fidelity"] = content_fidelity
    if extra:
        meta.update(dict(extra))

    return meta
