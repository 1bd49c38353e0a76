"""CLI logging helpers.

Provides the CLI logger and the ``cli_command`` decorator that times each
command and turns known library exceptions into error envelopes.
"""

import functools
import logging
import time
from typing import Any, Callable, TypeVar

from contextfit.cli.output import emit_exception
from contextfit.core.errors import ERROR_MAPPINGS

T = TypeVar("T")

_CLI_LOGGER_NAME = "contextfit.cli"


def get_cli_logger() -> logging.Logger:
    return logging.getLogger(_CLI_LOGGER_NAME)


def cli_command(name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator logging command timing and mapping known errors to envelopes.

    Args:
        name: Command name used in log records
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        log = get_cli_logger()

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except tuple(ERROR_MAPPINGS) as e:
                log.debug(f"Command {name} failed: {e}")
                emit_exception(e)
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            log.debug(
                f"Command {name} completed",
                extra={"command": name, "duration_ms": elapsed_ms},
            )
            return result

        return wrapper

    return decorator
