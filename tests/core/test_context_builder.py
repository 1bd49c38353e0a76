"""Tests for the ContextBuilder facade and build_context().

Tests cover:
1. End-to-end scenarios (sliding window, hybrid, degraded, exact threshold, empty history)
2. Properties held by every build (presence, budget, preserved turns, ordering)
3. Idempotence and determinism
4. Disabled compression and eager configuration validation
5. Summarize and Hybrid through the facade
"""

import pytest

from contextfit.core.context import (
    AssemblyState,
    BuildResult,
    CompressionConfig,
    CompressionStrategy,
    ContextBuilder,
    SegmentKind,
    build_context,
    build_context_sync,
    history_from_segments,
)
from contextfit.core.errors import ConfigurationError
from contextfit.core.tokens import BudgetStatus, TokenEstimator


def _config(**overrides):
    config = {
        "threshold_percent": 80,
        "preserve_recent_messages": 3,
        "reserved_for_response_tokens": 200,
        "strategy": "sliding_window",
    }
    config.update(overrides)
    return config


def _history_segments(segments):
    return [s for s in segments if s.kind == SegmentKind.HISTORY_MESSAGE]


# =============================================================================
# Scenarios
# =============================================================================


class TestBuildScenarios:
    """End-to-end behavior on small hand-counted contexts."""

    @pytest.mark.asyncio
    async def test_sliding_window_drops_oldest_turn(self, word_estimator, make_words, make_history):
        """690 tokens against a 640-token threshold drops exactly one turn."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(),
            estimator=word_estimator,
        )

        assert result.original_tokens == 690
        assert result.tokens_used == 630
        assert result.dropped_count == 1
        assert result.strategy_used == CompressionStrategy.SLIDING_WINDOW
        assert result.degraded is False

        history = _history_segments(segments)
        assert len(history) == 9
        assert history[0].order == 1

    @pytest.mark.asyncio
    async def test_sliding_window_result_metadata(self, word_estimator, make_words, make_history):
        """Usage, status and state trace describe the compressed context."""
        _, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(),
            estimator=word_estimator,
        )

        assert result.effective_budget == 800
        assert result.percentage_used == 79
        assert result.status == BudgetStatus.MONITOR
        assert result.compression_applied is True
        assert any(w.startswith("CONTENT_DROPPED") for w in result.warnings)
        assert result.state_trace == (
            AssemblyState.COLLECTING,
            AssemblyState.BUDGET_CHECK,
            AssemblyState.COMPRESSING,
            AssemblyState.RECHECK,
            AssemblyState.DONE,
        )

    @pytest.mark.asyncio
    async def test_hybrid_drops_low_value_knowledge_first(self, word_estimator, make_words, make_history):
        """Hybrid removes weak knowledge before touching history."""
        segments, result = await build_context(
            make_words(50, "s"),
            [(make_words(200, "k"), 0.1)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy="hybrid"),
            estimator=word_estimator,
        )

        assert result.original_tokens == 890
        assert result.tokens_used == 630
        assert result.dropped_knowledge_count == 1
        assert result.dropped_count == 1
        assert result.strategy_used == CompressionStrategy.HYBRID
        assert not any(s.kind == SegmentKind.KNOWLEDGE for s in segments)
        assert len(_history_segments(segments)) == 9

    @pytest.mark.asyncio
    async def test_sliding_window_keeps_knowledge_and_drops_more_history(
        self, word_estimator, make_words, make_history
    ):
        """The same input under the sliding window costs five turns instead."""
        segments, result = await build_context(
            make_words(50, "s"),
            [(make_words(200, "k"), 0.1)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(),
            estimator=word_estimator,
        )

        assert result.dropped_count == 5
        assert result.dropped_knowledge_count == 0
        assert result.tokens_used == 590
        assert sum(1 for s in segments if s.kind == SegmentKind.KNOWLEDGE) == 1

    @pytest.mark.asyncio
    async def test_all_history_preserved_truncates_current_message(
        self, word_estimator, make_words, make_history, recording_summarizer
    ):
        """Nothing is removable, so the current message is cut and the result degraded."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(200, "c"),
            1000,
            _config(strategy="summarize", preserve_recent_messages=10),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        assert result.degraded is True
        assert result.tokens_used <= 800
        assert result.dropped_count == 0
        assert len(_history_segments(segments)) == 10
        assert recording_summarizer.calls == []

        current = segments[-1]
        assert current.kind == SegmentKind.CURRENT_MESSAGE
        assert current.truncated is True
        assert current.tokens == 150
        assert current.content.startswith("c0 c1 c2")
        assert current.content.endswith("[... truncated]")
        assert any(w.startswith("CONTENT_TRUNCATED") for w in result.warnings)
        assert result.final_state == AssemblyState.DEGRADED

    @pytest.mark.asyncio
    async def test_hybrid_degrades_after_dropping_all_knowledge(self, word_estimator, make_words, make_history):
        """Knowledge goes first, then the current message is truncated."""
        segments, result = await build_context(
            make_words(50, "s"),
            [(make_words(100, "k"), 0.5)],
            make_history(10, 60),
            make_words(200, "c"),
            1000,
            _config(strategy="hybrid", preserve_recent_messages=10),
            estimator=word_estimator,
        )

        assert result.dropped_knowledge_count == 1
        assert result.degraded is True
        assert result.tokens_used <= 800
        assert segments[-1].truncated is True
        assert len(_history_segments(segments)) == 10

    @pytest.mark.asyncio
    async def test_exact_threshold_triggers_compression(self, word_estimator, make_words, make_history):
        """At threshold 100, a context exactly filling the budget is compressed."""
        _, result = await build_context(
            make_words(100, "s"),
            [],
            make_history(10, 60),
            make_words(100, "c"),
            1000,
            _config(threshold_percent=100),
            estimator=word_estimator,
        )

        assert result.original_tokens == 800
        assert result.strategy_used == CompressionStrategy.SLIDING_WINDOW
        assert result.dropped_count == 1
        assert result.tokens_used == 740

    @pytest.mark.asyncio
    async def test_one_token_below_threshold_is_untouched(self, word_estimator, make_words, make_history):
        """One token under the threshold skips compression."""
        _, result = await build_context(
            make_words(100, "s"),
            [],
            make_history(10, 60),
            make_words(99, "c"),
            1000,
            _config(threshold_percent=100),
            estimator=word_estimator,
        )

        assert result.original_tokens == 799
        assert result.strategy_used == CompressionStrategy.NONE
        assert result.dropped_count == 0

    @pytest.mark.asyncio
    async def test_empty_history_under_budget(self, word_estimator, make_words):
        """System prompt plus current message pass through unchanged."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            [],
            make_words(40, "c"),
            1000,
            _config(),
            estimator=word_estimator,
        )

        assert [s.kind for s in segments] == [SegmentKind.SYSTEM_PROMPT, SegmentKind.CURRENT_MESSAGE]
        assert result.strategy_used == CompressionStrategy.NONE
        assert result.tokens_used == 90
        assert result.degraded is False
        assert result.compression_applied is False
        assert result.state_trace == (
            AssemblyState.COLLECTING,
            AssemblyState.BUDGET_CHECK,
            AssemblyState.DONE,
        )


# =============================================================================
# Properties
# =============================================================================


class TestBuildProperties:
    """Invariants every build satisfies."""

    STRATEGIES = ["sliding_window", "drop_low_value", "summarize", "hybrid"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", STRATEGIES)
    @pytest.mark.parametrize("current_words", [10, 300, 900])
    async def test_budget_never_exceeded(
        self, strategy, current_words, word_estimator, make_words, make_history, recording_summarizer
    ):
        """tokens_used never exceeds the effective budget, whatever the input."""
        _, result = await build_context(
            make_words(50, "s"),
            [(make_words(120, "k"), 0.7), (make_words(80, "j"), 0.2)],
            make_history(12, 45),
            make_words(current_words, "c"),
            1000,
            _config(strategy=strategy),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        assert result.tokens_used <= result.effective_budget
        assert sum(s.tokens for s in result.kept_segments) == result.tokens_used

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", STRATEGIES)
    async def test_system_prompt_and_current_message_present(
        self, strategy, word_estimator, make_words, make_history
    ):
        """Exactly one system prompt first and one current message last."""
        system_prompt = make_words(50, "s")
        segments, _ = await build_context(
            system_prompt,
            [(make_words(200, "k"), 0.3)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy=strategy),
            estimator=word_estimator,
        )

        assert segments[0].kind == SegmentKind.SYSTEM_PROMPT
        assert segments[0].content == system_prompt
        assert segments[-1].kind == SegmentKind.CURRENT_MESSAGE
        assert sum(1 for s in segments if s.kind == SegmentKind.SYSTEM_PROMPT) == 1
        assert sum(1 for s in segments if s.kind == SegmentKind.CURRENT_MESSAGE) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("preserve", [0, 1, 3, 5])
    async def test_preserved_turns_survive(self, preserve, word_estimator, make_words, make_history):
        """The newest `preserve` turns are kept verbatim when the build is not degraded."""
        history = make_history(10, 60)
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            history,
            make_words(40, "c"),
            1000,
            _config(preserve_recent_messages=preserve, threshold_percent=50),
            estimator=word_estimator,
        )

        assert result.degraded is False
        kept = _history_segments(segments)
        assert len(kept) >= preserve
        if preserve:
            assert [s.content for s in kept[-preserve:]] == [text for _, text in history[-preserve:]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", STRATEGIES)
    async def test_conversation_order_preserved(
        self, strategy, word_estimator, make_words, make_history, recording_summarizer
    ):
        """Knowledge keeps caller order and conversation segments stay in time order."""
        segments, _ = await build_context(
            make_words(50, "s"),
            [(make_words(30, "a"), 0.9), (make_words(30, "b"), 0.8), (make_words(30, "d"), 0.7)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy=strategy),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        knowledge_orders = [s.order for s in segments if s.kind == SegmentKind.KNOWLEDGE]
        assert knowledge_orders == sorted(knowledge_orders)

        conversation_orders = [s.order for s in segments if s.kind.is_conversational]
        assert conversation_orders == sorted(conversation_orders)
        assert len(set(conversation_orders)) == len(conversation_orders)

        kinds = [s.kind for s in segments]
        last_knowledge = max((i for i, k in enumerate(kinds) if k == SegmentKind.KNOWLEDGE), default=0)
        first_conversation = min(i for i, k in enumerate(kinds) if k.is_conversational)
        assert last_knowledge < first_conversation

    @pytest.mark.asyncio
    async def test_rebuilding_output_is_a_no_op(self, word_estimator, make_words, make_history):
        """Feeding a built context back in changes nothing and drops nothing."""
        config = _config()
        first_segments, first = await build_context(
            make_words(50, "s"),
            [(make_words(20, "k"), 0.9)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            config,
            estimator=word_estimator,
        )

        knowledge = [(s.content, s.value) for s in first_segments if s.kind == SegmentKind.KNOWLEDGE]
        second_segments, second = await build_context(
            first_segments[0].content,
            knowledge,
            history_from_segments(first_segments),
            first_segments[-1].content,
            1000,
            config,
            estimator=word_estimator,
        )

        assert second.dropped_count == 0
        assert second.strategy_used == CompressionStrategy.NONE
        assert second.tokens_used == first.tokens_used
        assert [s.content for s in second_segments] == [s.content for s in first_segments]

    @pytest.mark.asyncio
    async def test_builds_are_deterministic(self, word_estimator, make_words, make_history):
        """Identical inputs produce identical outputs."""
        builder = ContextBuilder(_config(strategy="drop_low_value"), estimator=word_estimator)
        args = (
            make_words(50, "s"),
            [(make_words(100, "k"), 0.4), (make_words(100, "j"), 0.4)],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
        )

        first = await builder.build(*args)
        second = await builder.build(*args)

        assert first.segments == second.segments
        assert first.result == second.result


# =============================================================================
# Summarize and Hybrid through the facade
# =============================================================================


class TestBuildWithSummarizer:
    """Summarization paths reached through build_context()."""

    @pytest.mark.asyncio
    async def test_summarize_folds_oldest_turn(
        self, word_estimator, make_words, make_history, recording_summarizer
    ):
        """One summarized turn is enough to get under threshold."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy="summarize"),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        assert result.strategy_used == CompressionStrategy.SUMMARIZE
        assert result.dropped_count == 1
        assert result.tokens_used == 631
        assert result.fallback_applied is False

        summary = segments[1]
        assert summary.kind == SegmentKind.SUMMARY
        assert summary.content == "recap"
        assert summary.covers == (0, 0)
        assert summary.role == "system"

        text, max_output_tokens = recording_summarizer.calls[0]
        assert text.startswith("user: m0x0")
        assert max_output_tokens == 9

    @pytest.mark.asyncio
    async def test_summarize_without_summarizer_falls_back(self, word_estimator, make_words, make_history):
        """A missing summarizer is recovered with the sliding window."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy="summarize"),
            estimator=word_estimator,
        )

        assert result.fallback_applied is True
        assert result.summarizer_error == "no summarizer configured"
        assert result.strategy_used == CompressionStrategy.SUMMARIZE
        assert result.dropped_count == 1
        assert result.degraded is False
        assert not any(s.kind == SegmentKind.SUMMARY for s in segments)
        assert any(w.startswith("SUMMARIZER_UNAVAILABLE") for w in result.warnings)

    @pytest.mark.asyncio
    async def test_hybrid_window_cap_hands_over_to_summarizer(
        self, word_estimator, make_words, make_history, recording_summarizer
    ):
        """With the window capped at zero drops, Hybrid summarizes instead."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy="hybrid", hybrid_window_max_drops=0),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        assert result.strategy_used == CompressionStrategy.HYBRID
        assert len(recording_summarizer.calls) == 1
        assert any(s.kind == SegmentKind.SUMMARY for s in segments)
        assert result.dropped_count == 1


# =============================================================================
# Configuration and disabled compression
# =============================================================================


class TestBuilderConfiguration:
    """Eager validation and the enabled switch."""

    def test_invalid_threshold_rejected_before_assembly(self):
        """A bad threshold fails at construction, before any estimation."""
        calls = []
        estimator = TokenEstimator(tokenizer=lambda text: calls.append(text) or 1)

        with pytest.raises(ConfigurationError) as exc_info:
            ContextBuilder(_config(threshold_percent=0), estimator=estimator)

        assert exc_info.value.field == "threshold_percent"
        assert calls == []

    @pytest.mark.asyncio
    async def test_reservation_covering_capacity_rejected_before_assembly(self):
        """capacity <= reserved fails before any segment is estimated."""
        calls = []
        estimator = TokenEstimator(tokenizer=lambda text: calls.append(text) or 1)
        builder = ContextBuilder(_config(reserved_for_response_tokens=1000), estimator=estimator)

        with pytest.raises(ConfigurationError, match="effective budget must be positive"):
            await builder.build("system", [], [], "hello", 1000)

        assert calls == []

    def test_typed_config_rejected_with_configuration_error(self):
        """Constructing the model directly raises the same error as a mapping."""
        with pytest.raises(ConfigurationError) as exc_info:
            ContextBuilder(
                CompressionConfig(threshold_percent=0, preserve_recent_messages=0, reserved_for_response_tokens=0)
            )

        assert exc_info.value.field == "threshold_percent"
        assert exc_info.value.value == 0

    def test_typed_config_accepted(self):
        config = CompressionConfig(**_config())

        assert ContextBuilder(config).config is config

    def test_strategy_none_not_selectable(self):
        """Disabling compression is done with enabled, not strategy none."""
        with pytest.raises(ConfigurationError):
            ContextBuilder(_config(strategy="none"))

    @pytest.mark.asyncio
    async def test_disabled_returns_context_above_threshold(self, word_estimator, make_words, make_history):
        """enabled=False skips compression while the context fits the budget."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(enabled=False),
            estimator=word_estimator,
        )

        assert result.strategy_used == CompressionStrategy.NONE
        assert result.tokens_used == 690
        assert len(_history_segments(segments)) == 10
        assert result.state_trace == (
            AssemblyState.COLLECTING,
            AssemblyState.BUDGET_CHECK,
            AssemblyState.DONE,
        )

    @pytest.mark.asyncio
    async def test_disabled_still_enforces_hard_limit(self, word_estimator, make_words, make_history):
        """enabled=False still truncates a context that exceeds the budget."""
        segments, result = await build_context(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(200, "c"),
            1000,
            _config(enabled=False),
            estimator=word_estimator,
        )

        assert result.degraded is True
        assert result.tokens_used <= 800
        assert segments[-1].truncated is True
        assert result.final_state == AssemblyState.DEGRADED


# =============================================================================
# Facade helpers
# =============================================================================


class TestFacadeHelpers:
    """BuildResult, the sync wrappers and history_from_segments."""

    def test_build_sync_unpacks(self, word_estimator, make_words):
        """BuildResult unpacks into (segments, result)."""
        builder = ContextBuilder(_config(), estimator=word_estimator)
        built = builder.build_sync(make_words(5, "s"), [], [], "hello", 1000)

        assert isinstance(built, BuildResult)
        segments, result = built
        assert isinstance(segments, list)
        assert result.tokens_used == 6

    def test_build_context_sync(self, word_estimator):
        segments, result = build_context_sync(
            "be brief",
            ["fact one"],
            [("user", "hi"), ("assistant", "hello there")],
            "question",
            1000,
            _config(),
            estimator=word_estimator,
        )

        assert result.tokens_used == 2 + 2 + 1 + 2 + 1
        assert len(segments) == 5

    def test_to_dict_metadata_only(self, word_estimator):
        """include_content=False drops segment text but keeps accounting."""
        builder = ContextBuilder(_config(), estimator=word_estimator)
        built = builder.build_sync("be brief", [], [("user", "hi")], "question", 1000)

        data = built.to_dict(include_content=False)

        assert all("content" not in segment for segment in data["kept_segments"])
        assert data["breakdown"]["total"] == data["tokens_used"] == 4
        assert data["strategy_used"] == "none"

    def test_history_from_segments_keeps_summaries(
        self, word_estimator, make_words, make_history, recording_summarizer
    ):
        """Summaries come back as system-role turns in their time slot."""
        segments, _ = build_context_sync(
            make_words(50, "s"),
            [],
            make_history(10, 60),
            make_words(40, "c"),
            1000,
            _config(strategy="summarize"),
            estimator=word_estimator,
            summarizer=recording_summarizer,
        )

        turns = history_from_segments(segments)

        assert len(turns) == 10
        assert turns[0].role == "system"
        assert turns[0].text == "recap"
        assert turns[1].role == "assistant"
