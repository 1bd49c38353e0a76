"""
Response builder functions for CLI operations.

Provides success_response() and error_response(), the two constructors
for creating standardized ToolResponse objects.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from contextfit.core.responses.types import (
    ErrorCode,
    ErrorType,
    ToolResponse,
    _build_meta,
)


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    content_fidelity: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> ToolResponse:
    """Create a standardized success response.

    Args:
        data: Optional mapping used as the base payload.
        warnings: Non-fatal issues to surface in ``meta.warnings``.
        content_fidelity: Response completeness level (full|partial|degraded).
            Anything other than "full" means content was dropped, summarized
            or truncated to fit the token budget.
        meta: Arbitrary extra metadata to merge into ``meta``.
        **fields: Additional payload fields (shorthand for ``data.update``).

    Example:
        >>> success_response(
        ...     data={"tokens_used": 630},
        ...     warnings=["CONTENT_DROPPED: 1 history message removed"],
        ...     content_fidelity="partial",
        ... )
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))
    if fields:
        payload.update(fields)

    meta_payload = _build_meta(
        warnings=warnings,
        content_fidelity=content_fidelity,
        extra=meta,
    )

    return ToolResponse(success=True, data=payload, error=None, meta=meta_payload)


def error_response(
    message: str,
    *,
    data: Optional[Mapping[str, Any]] = None,
    error_code: Optional[Union[ErrorCode, str]] = None,
    error_type: Optional[Union[ErrorType, str]] = None,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> ToolResponse:
    """Create a standardized error response.

    Args:
        message: Human-readable description of the failure.
        data: Optional mapping with additional machine-readable context.
        error_code: Canonical error code (``ErrorCode`` enum or string).
        error_type: Error category for routing (``ErrorType`` enum or string).
        remediation: User-facing guidance on how to fix the issue.
        details: Nested structure describing validation failures or metadata.
        meta: Arbitrary extra metadata to merge into ``meta``.

    Example:
        >>> error_response(
        ...     "threshold_percent must be in [1, 100], got 0",
        ...     error_code=ErrorCode.CONFIGURATION_ERROR,
        ...     error_type=ErrorType.VALIDATION,
        ...     remediation="Pick a threshold between 1 and 100",
        ... )
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))

    effective_error_code: Union[ErrorCode, str] = error_code if error_code is not None else ErrorCode.INTERNAL_ERROR
    effective_error_type: Union[ErrorType, str] = error_type if error_type is not None else ErrorType.INTERNAL

    if "error_code" not in payload:
        payload["error_code"] = (
            effective_error_code.value if isinstance(effective_error_code, Enum) else effective_error_code
        )
    if "error_type" not in payload:
        payload["error_type"] = (
            effective_error_type.value if isinstance(effective_error_type, Enum) else effective_error_type
        )
    if remediation is not None and "remediation" not in payload:
        payload["remediation"] = remediation
    if details and "details" not in payload:
        payload["details"] = dict(details)

    meta_payload = _build_meta(extra=meta)

    return ToolResponse(success=False, data=payload, error=message, meta=meta_payload)
