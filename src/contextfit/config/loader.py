"""Settings loading logic.

Provides ``_SettingsLoader``, a mixin class whose methods are inherited by
``Settings`` (defined in ``settings.py``). Loading reads layered TOML files
and environment overrides; validation of the compression table happens once
everything is merged.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, cast

from contextfit.config.parsing import _parse_optional_int, _try_parse_bool
from contextfit.core.errors import ConfigurationError

if TYPE_CHECKING:
    from contextfit.config.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV_VAR = "CONTEXTFIT_CONFIG_FILE"
PROJECT_CONFIG_NAME = "contextfit.toml"
USER_CONFIG_NAME = ".contextfit.toml"

# Environment variable -> compression setting
_COMPRESSION_ENV_VARS: Dict[str, str] = {
    "CONTEXTFIT_ENABLED": "enabled",
    "CONTEXTFIT_THRESHOLD_PERCENT": "threshold_percent",
    "CONTEXTFIT_STRATEGY": "strategy",
    "CONTEXTFIT_PRESERVE_RECENT_MESSAGES": "preserve_recent_messages",
    "CONTEXTFIT_RESERVED_FOR_RESPONSE_TOKENS": "reserved_for_response_tokens",
    "CONTEXTFIT_SUMMARIZER_TIMEOUT": "summarizer_timeout_seconds",
    "CONTEXTFIT_HYBRID_WINDOW_MAX_DROPS": "hybrid_window_max_drops",
}
_INT_SETTINGS = {"threshold_percent", "preserve_recent_messages", "reserved_for_response_tokens"}


class _SettingsLoader:
    """Mixin providing config-loading methods for ``Settings``.

    At runtime ``self`` is always a ``Settings`` instance.
    """

    if TYPE_CHECKING:
        compression: Dict[str, Any]
        model_limits: Dict[str, int]
        default_model: Optional[str]
        summarizer: str
        summarizer_model: Optional[str]
        summarizer_base_url: Optional[str]
        log_level: str
        structured_logging: bool

        def compression_config(self, **overrides: Any) -> Any: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "Settings":
        """
        Create settings from environment variables and optional TOML files.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit config file (argument or CONTEXTFIT_CONFIG_FILE)
        3. Project TOML config (./contextfit.toml)
        4. User TOML config (~/.contextfit.toml)
        5. XDG config (~/.config/contextfit/config.toml)
        6. Default values

        Raises:
            ConfigurationError: If a config file is malformed or the merged
                compression settings are invalid
        """
        settings = cls()

        toml_path = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        if toml_path:
            path = Path(toml_path)
            if not path.exists():
                raise ConfigurationError(f"Config file not found: {path}", field="config_file", value=str(path))
            settings._load_toml(path)
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "contextfit" / "config.toml"
            if xdg_config.exists():
                settings._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            home_config = Path.home() / USER_CONFIG_NAME
            if home_config.exists():
                settings._load_toml(home_config)
                logger.debug(f"Loaded user config from {home_config}")

            project_config = Path(PROJECT_CONFIG_NAME)
            if project_config.exists():
                settings._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        settings._load_env()

        # Fail fast on invalid compression settings
        settings.compression_config()

        return cast("Settings", settings)

    def _load_toml(self, path: Path) -> None:
        """Merge one TOML file into the current settings."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error loading config file {path}: {e}")
            raise ConfigurationError(f"Invalid TOML in {path}: {e}", field="config_file", value=str(path)) from e

        if "compression" in data:
            table = data["compression"]
            if not isinstance(table, dict):
                raise ConfigurationError(
                    f"[compression] in {path} must be a table",
                    field="compression",
                    value=table,
                )
            self.compression.update(table)

        if "model" in data:
            model_cfg = data["model"]
            if "default" in model_cfg:
                self.default_model = str(model_cfg["default"])
            if "limits" in model_cfg:
                self.model_limits.update({str(k).lower(): int(v) for k, v in model_cfg["limits"].items()})

        if "summarizer" in data:
            summ = data["summarizer"]
            if "kind" in summ:
                self.summarizer = str(summ["kind"]).lower()
            if "model" in summ:
                self.summarizer_model = summ["model"]
            if "base_url" in summ:
                self.summarizer_base_url = summ["base_url"]

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                parsed = _try_parse_bool(log["structured"])
                if parsed is not None:
                    self.structured_logging = parsed

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        for env_var, key in _COMPRESSION_ENV_VARS.items():
            raw = os.environ.get(env_var)
            if raw is None or raw == "":
                continue
            if key == "enabled":
                parsed = _try_parse_bool(raw)
                if parsed is None:
                    logger.warning(f"Ignoring {env_var}={raw!r}: expected true/false")
                    continue
                self.compression[key] = parsed
            elif key in _INT_SETTINGS:
                try:
                    self.compression[key] = int(raw)
                except ValueError:
                    logger.warning(f"Ignoring {env_var}={raw!r}: expected an integer")
            elif key == "hybrid_window_max_drops":
                try:
                    self.compression[key] = _parse_optional_int(raw)
                except ValueError:
                    logger.warning(f"Ignoring {env_var}={raw!r}: expected an integer")
            elif key == "summarizer_timeout_seconds":
                try:
                    self.compression[key] = float(raw)
                except ValueError:
                    logger.warning(f"Ignoring {env_var}={raw!r}: expected a number")
            else:
                self.compression[key] = raw

        if model := os.environ.get("CONTEXTFIT_MODEL"):
            self.default_model = model

        if summarizer := os.environ.get("CONTEXTFIT_SUMMARIZER"):
            self.summarizer = summarizer.lower()

        if level := os.environ.get("CONTEXTFIT_LOG_LEVEL"):
            self.log_level = level.upper()
