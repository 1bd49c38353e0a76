"""Summarizer collaborators for the Summarize compression strategy.

Key Components:
    - Summarizer: Protocol (``async summarize(text, max_output_tokens) -> str``)
    - request_summary(): Timeout-bounded call used by the compression engine
    - ExtractiveSummarizer, CallableSummarizer, ChatCompletionSummarizer

Usage:
    from contextfit.core.summarization import ExtractiveSummarizer

    builder = ContextBuilder(config, summarizer=ExtractiveSummarizer())
"""

from .constants import API_KEY_ENV_VAR, MAX_RETRIES, RETRY_DELAY
from .models import SummarizeFunc, Summarizer
from .summarizer import (
    CallableSummarizer,
    ChatCompletionSummarizer,
    ExtractiveSummarizer,
    build_summary_prompt,
    request_summary,
)

__all__ = [
    "API_KEY_ENV_VAR",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "SummarizeFunc",
    "Summarizer",
    "CallableSummarizer",
    "ChatCompletionSummarizer",
    "ExtractiveSummarizer",
    "build_summary_prompt",
    "request_summary",
]
