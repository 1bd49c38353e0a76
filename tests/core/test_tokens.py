"""Tests for token estimation, budget status, model limits and truncation.

Tests cover:
1. Heuristic estimation and per-script multipliers
2. Exact tokenizer override and its fallback on failure
3. Status bands and BudgetTracker
4. Model context limit lookup and display helpers
5. Token-bounded truncation
"""

from unittest.mock import patch

import pytest

from contextfit.core.context import ContextBudget
from contextfit.core.tokens import (
    COMMON_SCRIPT,
    DEFAULT_CONTEXT_LIMITS,
    TRUNCATION_MARKER,
    BudgetStatus,
    BudgetTracker,
    StatusBands,
    TokenEstimator,
    classify,
    detect_script,
    estimate_heuristic,
    format_context_limit,
    format_token_count,
    get_context_limit,
    is_large_context_model,
    tiktoken_tokenizer,
    truncate_to_tokens,
    usage_ratio,
)


# =============================================================================
# Estimation
# =============================================================================


class TestHeuristicEstimation:
    """Tests for the character heuristic."""

    def test_empty_text_is_zero(self):
        assert estimate_heuristic("") == 0
        assert TokenEstimator().estimate("") == 0

    def test_rounds_up(self):
        assert estimate_heuristic("abcde") == 2
        assert estimate_heuristic("abcd") == 1

    def test_custom_chars_per_token(self):
        assert estimate_heuristic("abcdefgh", chars_per_token=2) == 4

    def test_multiplier_applies(self):
        assert estimate_heuristic("abcdefgh", multiplier=1.5) == 3

    def test_script_multiplier_selected_by_dominant_script(self):
        estimator = TokenEstimator(script_multipliers={"cjk": 2.0})

        assert estimator.estimate("日本語テキスト") == 4
        assert estimator.estimate("latin text") == 3

    def test_invalid_parameters_rejected(self):
        with pytest.raises(ValueError, match="chars_per_token"):
            TokenEstimator(chars_per_token=0)
        with pytest.raises(ValueError, match="default_multiplier"):
            TokenEstimator(default_multiplier=-1)
        with pytest.raises(ValueError, match="latin"):
            TokenEstimator(script_multipliers={"latin": 0})

    def test_estimator_is_callable(self):
        assert TokenEstimator()("abcdefgh") == 2


class TestScriptDetection:
    """Tests for detect_script()."""

    @pytest.mark.parametrize(
        "text,script",
        [
            ("hello world", "latin"),
            ("Привет мир", "cyrillic"),
            ("漢字とかな", "cjk"),
            ("12345 !?", COMMON_SCRIPT),
            ("", COMMON_SCRIPT),
        ],
    )
    def test_detects_dominant_script(self, text, script):
        assert detect_script(text) == script

    def test_ties_broken_by_name(self):
        assert detect_script("ab αβ") == "greek"


class TestTokenizerOverride:
    """Tests for the exact tokenizer path."""

    def test_tokenizer_used_when_valid(self):
        estimator = TokenEstimator(tokenizer=lambda text: 7)

        assert estimator.estimate("anything") == 7

    def test_tokenizer_exception_falls_back(self):
        def broken(text):
            raise RuntimeError("encoding unavailable")

        estimator = TokenEstimator(tokenizer=broken)

        assert estimator.estimate("abcdefgh") == 2
        assert estimator.estimate_with_method("abcdefgh") == (2, "heuristic")

    def test_method_reports_exact_and_heuristic(self):
        assert TokenEstimator(tokenizer=lambda text: 7).estimate_with_method("anything") == (7, "exact")
        assert TokenEstimator().estimate_with_method("abcdefgh") == (2, "heuristic")

    @pytest.mark.parametrize("bad_count", [-1, 2.5, None, True])
    def test_invalid_count_falls_back(self, bad_count):
        estimator = TokenEstimator(tokenizer=lambda text: bad_count)

        assert estimator.estimate("abcdefgh") == 2

    def test_tiktoken_tokenizer_counts_encoded_tokens(self):
        class FakeEncoding:
            def encode(self, text):
                return text.split()

        with patch(
            "contextfit.core.tokens.estimation._get_cached_encoding",
            return_value=FakeEncoding(),
        ) as get_encoding:
            count = tiktoken_tokenizer("gpt-4o")("three little words")

        assert count == 3
        get_encoding.assert_called_once_with("gpt-4o")


# =============================================================================
# Budget status
# =============================================================================


class TestBudgetStatus:
    """Tests for usage classification."""

    def test_usage_ratio(self):
        assert usage_ratio(400, 800) == 0.5
        assert usage_ratio(1000, 800) == 1.25

    def test_usage_ratio_rejects_empty_budget(self):
        with pytest.raises(ValueError):
            usage_ratio(10, 0)

    @pytest.mark.parametrize(
        "tokens,status",
        [
            (0, BudgetStatus.SAFE),
            (399, BudgetStatus.SAFE),
            (400, BudgetStatus.MONITOR),
            (639, BudgetStatus.MONITOR),
            (640, BudgetStatus.CRITICAL),
            (900, BudgetStatus.CRITICAL),
        ],
    )
    def test_default_bands(self, tokens, status):
        assert classify(tokens, 800) == status

    def test_custom_bands(self):
        bands = StatusBands(monitor_ratio=0.7, critical_ratio=0.9)

        assert classify(500, 800, bands) == BudgetStatus.SAFE
        assert classify(600, 800, bands) == BudgetStatus.MONITOR

    def test_bands_must_be_ordered(self):
        with pytest.raises(ValueError):
            StatusBands(monitor_ratio=0.9, critical_ratio=0.5)

    def test_tracker(self):
        budget = ContextBudget(
            model_capacity_tokens=1000,
            reserved_for_response_tokens=200,
            threshold_percent=80,
            preserve_recent_messages=0,
        )
        tracker = BudgetTracker(budget)

        assert tracker.should_compress(640)
        assert not tracker.should_compress(639)
        assert tracker.classify(100) == BudgetStatus.SAFE
        assert tracker.headroom(900) == -100
        assert tracker.usage_ratio(200) == 0.25


# =============================================================================
# Model limits
# =============================================================================


class TestModelLimits:
    """Tests for get_context_limit() and display helpers."""

    def test_exact_match_case_insensitive(self):
        assert get_context_limit("GPT-4o") == 128_000

    def test_longest_partial_match_wins(self):
        assert get_context_limit("gpt-4-turbo-2024-04-09") == 128_000
        assert get_context_limit("gpt-4-0613") == 8_192
        assert get_context_limit("claude-3.5-sonnet-20241022") == 200_000

    def test_unknown_and_missing_models_use_default(self):
        assert get_context_limit("totally-unknown") == DEFAULT_CONTEXT_LIMITS["default"]
        assert get_context_limit(None) == DEFAULT_CONTEXT_LIMITS["default"]

    def test_overrides_take_precedence(self):
        assert get_context_limit("gpt-4o", overrides={"GPT-4o": 64_000}) == 64_000
        assert get_context_limit("my-local-model-q4", overrides={"my-local-model": 16_000}) == 16_000

    def test_large_context(self):
        assert is_large_context_model("gemini-1.5-pro")
        assert not is_large_context_model("gpt-4")

    @pytest.mark.parametrize(
        "limit,display",
        [(1_000_000, "1.0M"), (128_000, "128k"), (512, "512")],
    )
    def test_format_context_limit(self, limit, display):
        assert format_context_limit(limit) == display

    def test_format_token_count(self):
        assert format_token_count(1234) == "1.2k"
        assert format_token_count(640) == "640"


# =============================================================================
# Truncation
# =============================================================================


def _words(text):
    return len(text.split())


class TestTruncation:
    """Tests for truncate_to_tokens()."""

    def test_fitting_text_unchanged(self):
        assert truncate_to_tokens("a b c", 3, _words) == "a b c"

    def test_keeps_prefix_and_marker(self):
        text = " ".join(f"w{i}" for i in range(20))

        result = truncate_to_tokens(text, 10, _words)

        assert result.startswith("w0 w1 w2")
        assert result.endswith(TRUNCATION_MARKER)
        assert _words(result) == 10

    def test_drops_marker_when_it_does_not_fit(self):
        result = truncate_to_tokens("alpha beta gamma", 1, _words)

        assert result == "alpha"

    def test_non_positive_budget_gives_empty(self):
        assert truncate_to_tokens("alpha beta", 0, _words) == ""
        assert truncate_to_tokens("alpha beta", -5, _words) == ""

    def test_result_always_fits(self):
        text = "The quick brown fox jumps over the lazy dog. " * 20
        estimator = TokenEstimator()

        for budget in (1, 5, 17, 60):
            assert estimator.estimate(truncate_to_tokens(text, budget, estimator.estimate)) <= budget
