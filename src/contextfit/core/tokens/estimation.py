"""Token estimation with an exact-tokenizer override and heuristic fallback.

Provides:
    - TokenEstimator: Frozen estimator combining an optional exact tokenizer
      with the per-script character heuristic
    - detect_script(): Dominant writing system of a text segment
    - estimate_heuristic(): The ``ceil(chars * multiplier / chars_per_token)`` rule
    - tiktoken_tokenizer(): Exact tokenizer factory backed by tiktoken
"""

from __future__ import annotations

import logging
import math
import unicodedata
from collections import Counter
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional

import tiktoken

logger = logging.getLogger(__name__)

# ~4 characters per token is the common approximation for English text
DEFAULT_CHARS_PER_TOKEN = 4.0
DEFAULT_MULTIPLIER = 1.0

METHOD_EXACT = "exact"
METHOD_HEURISTIC = "heuristic"

# Unicode character-name prefixes mapped to script names
_SCRIPT_PREFIXES: tuple[tuple[str, str], ...] = (
    ("CJK", "cjk"),
    ("HIRAGANA", "cjk"),
    ("KATAKANA", "cjk"),
    ("HANGUL", "cjk"),
    ("LATIN", "latin"),
    ("CYRILLIC", "cyrillic"),
    ("GREEK", "greek"),
    ("ARABIC", "arabic"),
    ("HEBREW", "hebrew"),
    ("DEVANAGARI", "devanagari"),
    ("THAI", "thai"),
)

COMMON_SCRIPT = "common"

Tokenizer = Callable[[str], int]


def detect_script(text: str) -> str:
    """Detect the dominant script of a text segment.

    Only alphabetic characters vote. Ties are broken by script name so the
    result is deterministic.

    Args:
        text: Text to inspect

    Returns:
        Script name (e.g. "latin", "cjk"), or "common" when the text has no
        recognised letters
    """
    votes: Counter[str] = Counter()
    for char in text:
        if not char.isalpha():
            continue
        name = unicodedata.name(char, "")
        for prefix, script in _SCRIPT_PREFIXES:
            if name.startswith(prefix):
                votes[script] += 1
                break

    if not votes:
        return COMMON_SCRIPT

    return min(votes.items(), key=lambda item: (-item[1], item[0]))[0]


def estimate_heuristic(
    text: str,
    *,
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN,
    multiplier: float = DEFAULT_MULTIPLIER,
) -> int:
    """Estimate tokens using the character heuristic.

    Args:
        text: Text to estimate
        chars_per_token: Characters per token (default 4)
        multiplier: Script adjustment applied to the character count

    Returns:
        ``ceil(len(text) * multiplier / chars_per_token)``, 0 for empty text
    """
    if not text:
        return 0
    return math.ceil(len(text) * multiplier / chars_per_token)


@lru_cache(maxsize=32)
def _get_cached_encoding(model_name: str) -> Any:
    """Get a cached tiktoken encoding for the given model name.

    Args:
        model_name: Model name to get encoding for, or "" for default cl100k_base

    Returns:
        tiktoken Encoding object
    """
    if model_name:
        try:
            return tiktoken.encoding_for_model(model_name)
        except KeyError:
            # Model not found, fall back to cl100k_base
            return tiktoken.get_encoding("cl100k_base")
    return tiktoken.get_encoding("cl100k_base")


def tiktoken_tokenizer(model: Optional[str] = None) -> Tokenizer:
    """Build an exact tokenizer backed by tiktoken.

    The encoding is resolved lazily on first use, so a missing encoding file
    surfaces as an estimation failure (and a heuristic fallback) rather than
    at construction time.

    Args:
        model: Optional model name for encoding selection

    Returns:
        Callable mapping text to its token count

    Example:
        estimator = TokenEstimator(tokenizer=tiktoken_tokenizer("gpt-4o"))
    """

    def count(text: str) -> int:
        return len(_get_cached_encoding(model or "").encode(text))

    return count


@dataclass(frozen=True)
class TokenEstimator:
    """Converts text segments into approximate token counts.

    Uses the exact ``tokenizer`` when one is supplied; any exception or
    invalid return from it falls back to the character heuristic. Estimation
    never raises.

    Attributes:
        tokenizer: Optional exact tokenizer for a specific model family
        chars_per_token: Characters per token for the heuristic
        default_multiplier: Heuristic multiplier for scripts without an entry
        script_multipliers: Per-script multipliers keyed by detect_script() name

    Example:
        estimator = TokenEstimator(script_multipliers={"latin": 1.3})
        tokens = estimator.estimate("Hello, world!")
    """

    tokenizer: Optional[Tokenizer] = None
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN
    default_multiplier: float = DEFAULT_MULTIPLIER
    script_multipliers: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate heuristic parameters after initialization."""
        if self.chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {self.chars_per_token}")
        if self.default_multiplier <= 0:
            raise ValueError(f"default_multiplier must be positive, got {self.default_multiplier}")
        for script, multiplier in self.script_multipliers.items():
            if multiplier <= 0:
                raise ValueError(f"multiplier for script '{script}' must be positive, got {multiplier}")

    def multiplier_for(self, text: str) -> float:
        """Get the heuristic multiplier for the dominant script of text."""
        if not self.script_multipliers:
            return self.default_multiplier
        return self.script_multipliers.get(detect_script(text), self.default_multiplier)

    def estimate(self, text: str) -> int:
        """Estimate the token count for text.

        Args:
            text: Text content to estimate

        Returns:
            Estimated token count (0 for empty text)
        """
        return self.estimate_with_method(text)[0]

    def estimate_with_method(self, text: str) -> tuple[int, str]:
        """Estimate the token count and report which method produced it.

        Returns:
            Tuple of (token count, "exact" or "heuristic"); "heuristic" also
            covers a fallback after the exact tokenizer failed
        """
        if not text:
            return 0, METHOD_HEURISTIC if self.tokenizer is None else METHOD_EXACT

        if self.tokenizer is not None:
            try:
                count = self.tokenizer(text)
            except Exception as e:
                logger.debug(f"Exact tokenizer failed, using heuristic: {e}")
            else:
                if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
                    return count, METHOD_EXACT
                logger.debug(f"Exact tokenizer returned invalid count {count!r}, using heuristic")

        tokens = estimate_heuristic(
            text,
            chars_per_token=self.chars_per_token,
            multiplier=self.multiplier_for(text),
        )
        return tokens, METHOD_HEURISTIC

    def __call__(self, text: str) -> int:
        return self.estimate(text)
