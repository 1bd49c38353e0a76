"""Summarizer protocol and type aliases.

Key Components:
    - Summarizer: Protocol every summarizer implements
    - SummarizeFunc: Plain callable shape accepted by CallableSummarizer
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol, Union, runtime_checkable

# Sync or async function: (text, max_output_tokens) -> summary
SummarizeFunc = Callable[[str, int], Union[str, Awaitable[str]]]


@runtime_checkable
class Summarizer(Protocol):
    """Injected summarization capability.

    Implementations return a summary of ``text`` that should stay within
    ``max_output_tokens``; the compression engine truncates output that
    overshoots. Any exception is treated as the summarizer being
    unavailable, never as a failure of the build.
    """

    async def summarize(self, text: str, max_output_tokens: int) -> str:
        ...
