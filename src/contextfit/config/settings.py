"""Settings dataclass.

This module defines the ``Settings`` class (field declarations and simple
accessor methods). Loading logic lives in the ``_SettingsLoader`` mixin
(``loader.py``) which ``Settings`` inherits from.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from typing import Any, Dict, Optional

from contextfit.config.loader import _SettingsLoader
from contextfit.core.context.config import DEFAULT_COMPRESSION_SETTINGS, CompressionConfig
from contextfit.core.tokens import get_context_limit

VALID_SUMMARIZERS = ("extractive", "chat", "none")


def _get_version() -> str:
    """Get package version from metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("contextfit")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for dev without install


_PACKAGE_VERSION = _get_version()


@dataclass
class Settings(_SettingsLoader):
    """Process-level settings with support for env vars and TOML overrides.

    Settings only seed the per-call CompressionConfig; the context core
    never reads them.
    """

    # Raw [compression] table, validated by compression_config()
    compression: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_COMPRESSION_SETTINGS))

    # Model capability descriptor
    default_model: Optional[str] = None
    model_limits: Dict[str, int] = field(default_factory=dict)

    # Summarizer selection: extractive, chat or none
    summarizer: str = "extractive"
    summarizer_model: Optional[str] = None
    summarizer_base_url: Optional[str] = None

    # Logging configuration
    log_level: str = "WARNING"
    structured_logging: bool = False

    version: str = field(default_factory=lambda: _PACKAGE_VERSION)

    def compression_config(self, **overrides: Any) -> CompressionConfig:
        """Validate the merged compression table into a CompressionConfig.

        Args:
            **overrides: Values taking precedence over the loaded table
                (None values are ignored)

        Raises:
            ConfigurationError: If any setting is invalid
        """
        data = dict(self.compression)
        data.update({key: value for key, value in overrides.items() if value is not None})
        return CompressionConfig.from_mapping(data)

    def get_context_limit(self, model_id: Optional[str] = None) -> int:
        """Resolve a model's context window, honoring [model.limits] overrides."""
        return get_context_limit(model_id or self.default_model, overrides=self.model_limits)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.WARNING)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("contextfit")
        root_logger.setLevel(level)
        root_logger.addHandler(handler)
