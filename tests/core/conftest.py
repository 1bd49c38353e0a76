"""Shared fixtures for context core tests.

Most tests count tokens with a whitespace tokenizer so that a text of N
words is exactly N tokens and scenarios can be built to the token.
"""

import pytest

from contextfit.core.tokens import TokenEstimator


def _make_words(count: int, tag: str = "w") -> str:
    return " ".join(f"{tag}{i}" for i in range(count))


@pytest.fixture
def word_estimator():
    """Estimator where every whitespace-separated word is one token."""
    return TokenEstimator(tokenizer=lambda text: len(text.split()))


@pytest.fixture
def make_words():
    """Factory for texts of an exact word (token) count."""
    return _make_words


@pytest.fixture
def make_history():
    """Factory for alternating user/assistant turns of a fixed token size."""

    def factory(count: int, tokens_each: int) -> list[tuple[str, str]]:
        return [
            ("user" if i % 2 == 0 else "assistant", _make_words(tokens_each, tag=f"m{i}x"))
            for i in range(count)
        ]

    return factory


class RecordingSummarizer:
    """Summarizer returning a fixed reply and recording every request."""

    def __init__(self, reply: str = "recap"):
        self.reply = reply
        self.calls: list[tuple[str, int]] = []

    async def summarize(self, text: str, max_output_tokens: int) -> str:
        self.calls.append((text, max_output_tokens))
        return self.reply


@pytest.fixture
def recording_summarizer():
    return RecordingSummarizer()
