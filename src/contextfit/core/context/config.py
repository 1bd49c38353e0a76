"""CompressionConfig model.

Holds the per-call compression settings a caller passes to the builder.
Validation runs when the model is created, so an invalid configuration fails
before any assembly work starts.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from contextfit.core.errors import ConfigurationError
from contextfit.core.tokens import DEFAULT_CHARS_PER_TOKEN, StatusBands, TokenEstimator, Tokenizer

from .constants import DEFAULT_SUMMARIZER_TIMEOUT
from .models import CompressionStrategy, ContextBudget

# Defaults applied by the settings loader; the model itself requires the
# budget fields to be passed explicitly.
DEFAULT_COMPRESSION_SETTINGS: dict[str, Any] = {
    "enabled": True,
    "threshold_percent": 80,
    "strategy": CompressionStrategy.HYBRID.value,
    "preserve_recent_messages": 4,
    "reserved_for_response_tokens": 1024,
    "summarizer_timeout_seconds": DEFAULT_SUMMARIZER_TIMEOUT,
}


def _configuration_error(error: ValidationError) -> ConfigurationError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ConfigurationError(
        f"Invalid compression configuration: {first.get('msg', error)}",
        field=field,
        value=first.get("input"),
    )


class CompressionConfig(BaseModel):
    """Compression settings for one build call.

    Invalid values raise ConfigurationError whether the model is built
    directly or through from_mapping().

    Example:
        config = CompressionConfig(
            threshold_percent=80,
            preserve_recent_messages=3,
            reserved_for_response_tokens=200,
            strategy="sliding-window",
        )
        budget = config.to_budget(model_capacity_tokens=1000)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Skip compression entirely when False")
    threshold_percent: int = Field(..., ge=1, le=100, description="Usage percentage that triggers compression")
    strategy: CompressionStrategy = Field(default=CompressionStrategy.HYBRID, description="Compression strategy")
    preserve_recent_messages: int = Field(..., ge=0, description="Newest history messages never dropped")
    reserved_for_response_tokens: int = Field(..., ge=0, description="Tokens held back for the response")
    summarizer_timeout_seconds: float = Field(
        default=DEFAULT_SUMMARIZER_TIMEOUT,
        gt=0,
        description="Seconds to wait for each summarizer call",
    )
    hybrid_window_max_drops: Optional[int] = Field(
        default=None,
        ge=0,
        description="Sliding-window drops Hybrid allows before summarizing (None = unlimited)",
    )
    monitor_ratio: float = Field(default=0.5, gt=0, description="Usage ratio where status becomes monitor")
    critical_ratio: float = Field(default=0.8, gt=0, description="Usage ratio where status becomes critical")
    message_overhead_tokens: int = Field(default=0, ge=0, description="Role framing tokens per message")
    chars_per_token: float = Field(default=DEFAULT_CHARS_PER_TOKEN, gt=0, description="Heuristic divisor")
    script_multipliers: dict[str, float] = Field(
        default_factory=dict,
        description="Per-script token multipliers (e.g. {'latin': 1.3})",
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise _configuration_error(e) from e

    @field_validator("strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: Any) -> Any:
        raw = getattr(value, "value", value)
        normalized = str(raw).strip().lower().replace("-", "_")
        if normalized == CompressionStrategy.NONE.value:
            raise ValueError("strategy 'none' is not selectable; set enabled = false instead")
        return normalized

    @field_validator("script_multipliers")
    @classmethod
    def _check_multipliers(cls, value: dict[str, float]) -> dict[str, float]:
        for script, multiplier in value.items():
            if multiplier <= 0:
                raise ValueError(f"multiplier for script '{script}' must be positive, got {multiplier}")
        return {script.lower(): multiplier for script, multiplier in value.items()}

    @model_validator(mode="after")
    def _check_status_bands(self) -> "CompressionConfig":
        if self.monitor_ratio > self.critical_ratio:
            raise ValueError(
                f"monitor_ratio ({self.monitor_ratio}) must not exceed critical_ratio ({self.critical_ratio})"
            )
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CompressionConfig":
        """Build a config from a plain mapping, raising ConfigurationError on bad values."""
        return cls(**dict(data))

    @property
    def status_bands(self) -> StatusBands:
        return StatusBands(monitor_ratio=self.monitor_ratio, critical_ratio=self.critical_ratio)

    def to_budget(self, model_capacity_tokens: int) -> ContextBudget:
        """Bind these settings to a model capacity.

        Raises:
            ConfigurationError: If the effective budget is not positive
        """
        return ContextBudget(
            model_capacity_tokens=model_capacity_tokens,
            reserved_for_response_tokens=self.reserved_for_response_tokens,
            threshold_percent=self.threshold_percent,
            preserve_recent_messages=self.preserve_recent_messages,
        )

    def make_estimator(self, tokenizer: Optional[Tokenizer] = None) -> TokenEstimator:
        return TokenEstimator(
            tokenizer=tokenizer,
            chars_per_token=self.chars_per_token,
            script_multipliers=dict(self.script_multipliers),
        )
