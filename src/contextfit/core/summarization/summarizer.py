"""Summarizer implementations and the timeout-bounded summary request.

Provides:
    - request_summary(): Await a summarizer under a timeout, mapping every
      failure to SummarizerUnavailableError
    - ExtractiveSummarizer: Local heuristic, keeps the first sentence per turn
    - CallableSummarizer: Wraps a sync or async function with retries
    - ChatCompletionSummarizer: OpenAI-compatible ``/chat/completions`` over httpx
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Optional

import httpx

from contextfit.core.errors import SummarizationError, SummarizerUnavailableError
from contextfit.core.tokens import TokenEstimator, truncate_to_tokens

from .constants import (
    API_KEY_ENV_VAR,
    DEFAULT_CHAT_BASE_URL,
    DEFAULT_CHAT_MODEL,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_TEMPERATURE,
    MAX_RETRIES,
    RETRY_DELAY,
)
from .models import SummarizeFunc, Summarizer

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


async def request_summary(
    summarizer: Optional[Summarizer],
    text: str,
    max_output_tokens: int,
    *,
    timeout: float,
) -> str:
    """Ask the summarizer for a summary, bounded by ``timeout`` seconds.

    A timeout cancels the in-flight call. Cancellation of the summarizer
    call alone is treated as unavailability; cancellation of the calling
    task propagates.

    Args:
        summarizer: Summarizer to call (None means none is configured)
        text: Content to summarize
        max_output_tokens: Token budget for the summary
        timeout: Seconds to wait before giving up

    Returns:
        The summary text

    Raises:
        SummarizerUnavailableError: On a missing summarizer, timeout,
            error, foreign cancellation, or non-string output
    """
    if summarizer is None:
        raise SummarizerUnavailableError("no summarizer configured")

    try:
        summary = await asyncio.wait_for(
            summarizer.summarize(text, max_output_tokens),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise SummarizerUnavailableError(f"summarizer timed out after {timeout}s") from e
    except asyncio.CancelledError as e:
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            raise
        raise SummarizerUnavailableError("summarizer call was cancelled", cause=e) from e
    except Exception as e:
        raise SummarizerUnavailableError("summarizer failed", cause=e) from e

    if not isinstance(summary, str):
        raise SummarizerUnavailableError(
            f"summarizer returned {type(summary).__name__}, expected str"
        )
    return summary


def build_summary_prompt(text: str, max_output_tokens: int) -> str:
    """Build the prompt sent to an LLM-backed summarizer.

    Args:
        text: Conversation excerpt, one ``role: text`` line per turn
        max_output_tokens: Target size of the summary

    Returns:
        Prompt string for the LLM
    """
    return (
        "Summarize the following earlier part of a conversation so it can replace "
        "the original messages in the model's context. Keep names, decisions, "
        "facts, open questions and anything later turns may refer to. "
        f"Use at most {max_output_tokens} tokens.\n\n"
        f"Conversation:\n{text}"
    )


class ExtractiveSummarizer:
    """Local summarizer keeping the first sentence of every turn.

    Needs no network access, so it is always available. Output is cut to
    ``max_output_tokens`` with the same estimator the engine uses.
    """

    def __init__(self, estimator: Optional[TokenEstimator] = None):
        self.estimator = estimator or TokenEstimator()

    async def summarize(self, text: str, max_output_tokens: int) -> str:
        lines = []
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            lines.append(_SENTENCE_END.split(line, maxsplit=1)[0])
        return truncate_to_tokens("\n".join(lines), max_output_tokens, self.estimator.estimate)


class CallableSummarizer:
    """Adapts a plain function into a Summarizer, with retries.

    Synchronous functions run in a worker thread so they never block the
    event loop.

    Example:
        def my_summarize(text: str, max_tokens: int) -> str:
            return llm_client.complete(f"Summarize: {text}", max_tokens=max_tokens)

        summarizer = CallableSummarizer(my_summarize, max_retries=1)
    """

    def __init__(
        self,
        func: SummarizeFunc,
        *,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ):
        """Initialize the callable summarizer.

        Args:
            func: ``(text, max_output_tokens) -> str`` or a coroutine function
            max_retries: Additional attempts after the first failure
            retry_delay: Delay between attempts in seconds
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        self._func = func
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def _call(self, text: str, max_output_tokens: int) -> Any:
        if asyncio.iscoroutinefunction(self._func):
            return await self._func(text, max_output_tokens)
        return await asyncio.to_thread(self._func, text, max_output_tokens)

    async def summarize(self, text: str, max_output_tokens: int) -> str:
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                result = await self._call(text, max_output_tokens)
                logger.debug(f"Summarization succeeded (attempt {attempt + 1}/{self.max_retries + 1})")
                return result
            except Exception as e:
                last_error = e
                logger.warning(f"Summarization attempt {attempt + 1} failed: {e}")

                # Don't retry on the last attempt
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay)

        raise SummarizationError(
            f"Summarization failed after {self.max_retries + 1} attempts"
        ) from last_error


class ChatCompletionSummarizer:
    """Summarizer backed by an OpenAI-compatible chat completion endpoint.

    Attributes:
        model: Model name sent with each request
        base_url: API root; requests go to ``{base_url}/chat/completions``
        timeout: HTTP timeout in seconds

    Example:
        summarizer = ChatCompletionSummarizer(
            model="gpt-4o-mini",
            api_key=os.environ["OPENAI_API_KEY"],
        )
        summary = await summarizer.summarize("user: ...\\nassistant: ...", 200)
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_CHAT_MODEL,
        base_url: str = DEFAULT_CHAT_BASE_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self._api_key = api_key or os.environ.get(API_KEY_ENV_VAR)
        self._transport = transport

    def _build_payload(self, text: str, max_output_tokens: int) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You write faithful, compact conversation summaries."},
                {"role": "user", "content": build_summary_prompt(text, max_output_tokens)},
            ],
            "max_tokens": max_output_tokens,
            "temperature": self.temperature,
        }

    def _parse_response(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise SummarizationError(f"Malformed chat completion response: {e!r}") from e
        if not isinstance(content, str):
            raise SummarizationError("Chat completion returned no text content")
        return content.strip()

    async def summarize(self, text: str, max_output_tokens: int) -> str:
        url = f"{self.base_url}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                url,
                json=self._build_payload(text, max_output_tokens),
                headers=headers,
            )

        if response.status_code >= 400:
            raise SummarizationError(
                f"Chat completion API error {response.status_code}: {response.text[:200]}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise SummarizationError("Chat completion response is not JSON") from e
        return self._parse_response(data)
