"""Command line interface for contextfit."""

from contextfit.cli.main import cli

__all__ = ["cli"]
