"""Constants for summarizer configuration."""

from __future__ import annotations

# Retry configuration
MAX_RETRIES = 2
RETRY_DELAY = 1.0  # seconds

# Chat completion defaults
DEFAULT_CHAT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_HTTP_TIMEOUT = 30.0  # seconds
DEFAULT_TEMPERATURE = 0.2

# Environment variable holding the chat completion API key
API_KEY_ENV_VAR = "CONTEXTFIT_SUMMARIZER_API_KEY"
