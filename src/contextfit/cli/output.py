"""JSON envelope output for CLI commands.

Every command prints exactly one minified JSON object on stdout, built with
the same success/error response helpers the library uses.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Mapping, NoReturn, Optional, Sequence

import click

from contextfit.core.errors import error_to_response
from contextfit.core.responses import error_response, success_response


def _emit(payload: Mapping[str, Any]) -> None:
    click.echo(json.dumps(payload, separators=(",", ":"), default=str))


def emit_success(
    data: Mapping[str, Any],
    *,
    warnings: Optional[Sequence[str]] = None,
    content_fidelity: Optional[str] = None,
) -> None:
    """Print a success envelope."""
    response = success_response(
        data=data,
        warnings=warnings,
        content_fidelity=content_fidelity,
    )
    _emit(asdict(response))


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    response = error_response(
        message,
        error_code=code,
        error_type=error_type,
        remediation=remediation,
        details=details,
    )
    _emit(asdict(response))
    sys.exit(1)


def emit_exception(exc: Exception, *, remediation: Optional[str] = None) -> NoReturn:
    """Print the envelope for a known exception and exit, re-raising unknown ones."""
    payload = error_to_response(exc)
    if payload is None:
        raise exc
    if remediation is not None:
        payload["data"].setdefault("remediation", remediation)
    _emit(payload)
    sys.exit(1)
