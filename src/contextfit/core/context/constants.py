"""Constants for context assembly, value scoring and compression."""

from __future__ import annotations

# =============================================================================
# Value Scoring Constants
# =============================================================================

# Weight factors for history message value (must sum to 1.0)
VALUE_WEIGHT_RECENCY = 0.6
VALUE_WEIGHT_REFERENCE = 0.4

# Reference count at which the reference signal saturates at 1.0
REFERENCE_SATURATION = 5

# Value multiplier for short acknowledgement turns ("ok", "thanks", ...)
LOW_VALUE_PENALTY = 0.25

# Messages longer than this are never treated as acknowledgements
LOW_VALUE_MAX_CHARS = 50

# Default reference score for knowledge items supplied as plain text
DEFAULT_REFERENCE_SCORE = 0.5

# =============================================================================
# Summarization Constants
# =============================================================================

# Default seconds to wait for one summarizer call
DEFAULT_SUMMARIZER_TIMEOUT = 10.0

# Role assigned to summary segments when rendered as conversation turns
SUMMARY_ROLE = "system"

# =============================================================================
# Warning Codes
# =============================================================================

WARNING_CONTENT_DROPPED = "CONTENT_DROPPED"
WARNING_KNOWLEDGE_DROPPED = "KNOWLEDGE_DROPPED"
WARNING_CONTENT_SUMMARIZED = "CONTENT_SUMMARIZED"
WARNING_SUMMARIZER_UNAVAILABLE = "SUMMARIZER_UNAVAILABLE"
WARNING_PRESERVED_DROPPED = "PRESERVED_DROPPED"
WARNING_CONTENT_TRUNCATED = "CONTENT_TRUNCATED"
