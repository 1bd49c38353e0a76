"""Configuration package for contextfit.

Sub-modules:
    parsing    – Boolean/optional-integer parsing helpers
    settings   – Settings dataclass (compression table, model limits, logging)
    loader     – Settings loading mixin (_SettingsLoader): TOML layers and env
    decorators – log_call, timed

CompressionConfig lives with the context core and is re-exported here.
"""

from typing import Optional

from contextfit.config.parsing import (  # noqa: F401
    _parse_optional_int,
    _try_parse_bool,
)
from contextfit.config.settings import (  # noqa: F401
    _PACKAGE_VERSION,
    VALID_SUMMARIZERS,
    Settings,
)
from contextfit.config.loader import CONFIG_FILE_ENV_VAR  # noqa: F401
from contextfit.config.decorators import (  # noqa: F401
    log_call,
    timed,
)
from contextfit.core.context.config import (  # noqa: F401
    DEFAULT_COMPRESSION_SETTINGS,
    CompressionConfig,
)


def load_config(config_file: Optional[str] = None) -> Settings:
    """Load settings from TOML layers and the environment."""
    return Settings.from_env(config_file)
