"""CLI commands.

The CLI exposes `build` (assemble a context from a JSON request), `estimate`
(token count of text) and `limits` (model context window lookup).
"""

from contextfit.cli.commands.build import build_cmd
from contextfit.cli.commands.tokens import estimate_cmd, limits_cmd

__all__ = [
    "build_cmd",
    "estimate_cmd",
    "limits_cmd",
]
