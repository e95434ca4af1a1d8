# FILE: tests/test_feedback_classifier.py
"""
Tests for the two-tier feedback classifier.

Tests cover:
1. Tier 0 rules (gibberish, greetings, commands) never reach the oracle
2. Oracle answer extraction (```json fence, bare {...} span)
3. Strict payload validation -> fallback on anything unexpected
4. Timeouts and provider failures -> fallback
5. Context summary contents
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, patch

from config.settings import RefinementSettings
from patchpath.providers.registry import LlmCallResult, LlmCallStatus
from patchpath.refinement import (
    Direction,
    FeedbackClassifier,
    FeedbackIntent,
    LatencyTier,
    OracleClient,
    OracleResponseError,
    SessionCommand,
    Specificity,
    Tier1Classifier,
    build_context_summary,
    extract_json_object,
    is_gibberish,
    parse_oracle_response,
    tier0_classify,
)
from patchpath.sessions import Message, MessageRole, Session


class StubOracle:
    """llm_client double: returns a canned answer (or raises)."""

    def __init__(self, answer="", error=None, delay=0.0):
        self.answer = answer
        self.error = error
        self.delay = delay
        self.prompts = []

    async def call_async(self, system_prompt, user_prompt):
        self.prompts.append((system_prompt, user_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.answer


def _payload(**overrides):
    data = {
        "intent": "adjust",
        "target": "filter_cutoff",
        "direction": "decrease",
        "specificity": "vague",
        "value": None,
        "confidence": 0.9,
        "reasoning": "Darker means lower cutoff",
    }
    data.update(overrides)
    return json.dumps(data)


# =============================================================================
# TIER 0
# =============================================================================


class TestTier0Gibberish:
    """Gibberish must resolve to clarify with high confidence, no oracle."""

    @pytest.mark.parametrize("text,heuristic", [
        ("a", "too_short"),
        ("  k ", "too_short"),
        ("XKCDQZ please", "caps_no_vowels"),
        ("aaaaaaaa", "repeated_chars"),
        ("hmmmmmm??", "repeated_chars"),
    ])
    def test_heuristics(self, text, heuristic):
        assert is_gibberish(text) == heuristic

    @pytest.mark.parametrize("text", ["darker", "add some delay", "Make it LOUDER"])
    def test_real_feedback_is_not_gibberish(self, text):
        assert is_gibberish(text) is None

    def test_gibberish_is_confident_clarify(self):
        result = tier0_classify("ZXCVBNM")
        assert result.matched
        assert result.feedback.intent == FeedbackIntent.CLARIFY
        assert result.feedback.confidence >= 0.9
        assert result.feedback.latency_tier == LatencyTier.TIER_0_RULES
        assert result.rule_name == "gibberish_caps_no_vowels"


class TestTier0Commands:
    @pytest.mark.parametrize("text", ["hi", "hello there!", "thanks so much", "good morning"])
    def test_greetings(self, text):
        result = tier0_classify(text)
        assert result.matched
        assert result.feedback.intent == FeedbackIntent.CLARIFY
        assert result.feedback.command is None

    @pytest.mark.parametrize("text,command", [
        ("undo that", SessionCommand.UNDO),
        ("can we go back please", SessionCommand.UNDO),
        ("start over", SessionCommand.START_FRESH),
        ("let's make a new patch", SessionCommand.START_FRESH),
        ("save this", SessionCommand.SAVE),
        ("perfect!", SessionCommand.SAVE),
    ])
    def test_commands(self, text, command):
        result = tier0_classify(text)
        assert result.matched
        assert result.feedback.command == command
        assert result.feedback.confidence >= 0.9

    def test_weak_approval_is_not_a_save(self):
        assert not tier0_classify("okay").matched

    @pytest.mark.parametrize("text", ["darker", "add delay", "remove the reverb", "more bass"])
    def test_patch_feedback_falls_through(self, text):
        assert not tier0_classify(text).matched

    @pytest.mark.parametrize("text", [
        "reset the filter cutoff a bit lower",
        "make it more clear",
        "try again with more reverb",
        "go back to the darker filter but add delay",
        "add delay, that would be great!",
        "something else in the reverb, maybe longer",
        "undo the delay and make it brighter",
    ])
    def test_command_words_inside_feedback_fall_through(self, text):
        assert not tier0_classify(text).matched

    @pytest.mark.parametrize("text,command", [
        ("Reset!", SessionCommand.START_FRESH),
        ("let’s start fresh", SessionCommand.START_FRESH),
        ("revert it please", SessionCommand.UNDO),
        ("that’s perfect", SessionCommand.SAVE),
        ("keep it", SessionCommand.SAVE),
    ])
    def test_whole_message_commands(self, text, command):
        result = tier0_classify(text)
        assert result.matched
        assert result.feedback.command == command
        assert result.feedback.confidence >= 0.9


# =============================================================================
# ORACLE ANSWER PARSING
# =============================================================================


class TestOracleParsing:
    def test_fenced_json(self):
        text = f"Sure! Here it is:\n```json\n{_payload()}\n```\nHope that helps."
        feedback = parse_oracle_response(text)
        assert feedback.intent == FeedbackIntent.ADJUST
        assert feedback.direction == Direction.DECREASE
        assert feedback.latency_tier == LatencyTier.TIER_1_CLASSIFIER

    def test_bare_span(self):
        text = f"The answer is {_payload(intent='add', target='delay', direction=None)} as requested"
        feedback = parse_oracle_response(text)
        assert feedback.intent == FeedbackIntent.ADD
        assert feedback.target == "delay"
        assert feedback.direction is None

    def test_null_strings_normalized(self):
        feedback = parse_oracle_response(_payload(direction="null", value="", target="  "))
        assert feedback.direction is None
        assert feedback.value is None
        assert feedback.target == "general"

    def test_specific_value_kept(self):
        feedback = parse_oracle_response(_payload(specificity="specific", value="2kHz"))
        assert feedback.specificity == Specificity.SPECIFIC
        assert feedback.value == "2kHz"

    def test_no_json_raises(self):
        with pytest.raises(OracleResponseError):
            extract_json_object("I could not decide, sorry.")

    def test_empty_raises(self):
        with pytest.raises(OracleResponseError):
            extract_json_object("   ")

    def test_non_object_raises(self):
        with pytest.raises(OracleResponseError):
            extract_json_object("```json\n[1, 2, 3]\n```")


# =============================================================================
# TIER 1 FALLBACKS
# =============================================================================


class TestTier1Classifier:
    @pytest.mark.asyncio
    async def test_valid_answer(self):
        oracle = StubOracle(_payload())
        feedback = await Tier1Classifier(oracle, timeout_seconds=1).classify("darker")
        assert feedback.intent == FeedbackIntent.ADJUST
        assert feedback.confidence == 0.9
        assert 'USER FEEDBACK: "darker"' in oracle.prompts[0][1]

    @pytest.mark.asyncio
    async def test_unknown_intent_falls_back(self):
        oracle = StubOracle(_payload(intent="teleport"))
        feedback = await Tier1Classifier(oracle, timeout_seconds=1).classify("beam me up")

        assert feedback.intent == FeedbackIntent.ADJUST
        assert feedback.target == "general"
        assert feedback.specificity == Specificity.VAGUE
        assert feedback.confidence == 0.3
        assert feedback.latency_tier == LatencyTier.FALLBACK

    @pytest.mark.asyncio
    async def test_out_of_range_confidence_falls_back(self):
        oracle = StubOracle(_payload(confidence=1.7))
        feedback = await Tier1Classifier(oracle, timeout_seconds=1).classify("darker")
        assert feedback.latency_tier == LatencyTier.FALLBACK

    @pytest.mark.asyncio
    async def test_malformed_json_falls_back(self):
        oracle = StubOracle('{"intent": "adjust", "target": ')
        feedback = await Tier1Classifier(oracle, timeout_seconds=1).classify("darker")
        assert feedback.confidence == 0.3

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        oracle = StubOracle(_payload(), delay=1.0)
        feedback = await Tier1Classifier(oracle, timeout_seconds=0.01).classify("darker")
        assert feedback.latency_tier == LatencyTier.FALLBACK
        assert "timed out" in feedback.reasoning

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        oracle = StubOracle(error=RuntimeError("rate limited"))
        feedback = await Tier1Classifier(oracle, timeout_seconds=1).classify("darker")
        assert feedback.latency_tier == LatencyTier.FALLBACK
        assert "rate limited" in feedback.reasoning


class TestOracleClient:
    @pytest.mark.asyncio
    async def test_success_returns_content(self):
        result = LlmCallResult(
            status=LlmCallStatus.SUCCESS, provider_id="anthropic", model_id="m", content="{}"
        )
        with patch("patchpath.providers.registry.llm_call", new=AsyncMock(return_value=result)) as mock_call:
            client = OracleClient(RefinementSettings(classifier_model="m"))
            assert await client.call_async("sys", "user") == "{}"

        kwargs = mock_call.await_args.kwargs
        assert kwargs["provider_id"] == "anthropic"
        assert kwargs["model_id"] == "m"
        assert kwargs["system_prompt"] == "sys"
        assert kwargs["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        result = LlmCallResult(
            status=LlmCallStatus.PROVIDER_UNAVAILABLE,
            provider_id="anthropic",
            model_id="m",
            error_message="no key",
        )
        with patch("patchpath.providers.registry.llm_call", new=AsyncMock(return_value=result)):
            with pytest.raises(OracleResponseError, match="no key"):
                await OracleClient(RefinementSettings()).call_async("sys", "user")


# =============================================================================
# TWO-TIER FLOW
# =============================================================================


class TestFeedbackClassifier:
    @pytest.mark.asyncio
    async def test_tier0_hit_skips_oracle(self, mock_tier1):
        classifier = FeedbackClassifier(tier1=mock_tier1)
        feedback = await classifier.classify("ZZZZZZZ", Session(session_id="s-1"))

        assert feedback.intent == FeedbackIntent.CLARIFY
        assert feedback.confidence >= 0.9
        assert mock_tier1.call_count == 0

    @pytest.mark.asyncio
    async def test_tier0_miss_calls_oracle(self, mock_tier1, make_feedback):
        mock_tier1.feedback = make_feedback("add", "delay", confidence=0.95)
        classifier = FeedbackClassifier(tier1=mock_tier1)

        feedback = await classifier.classify("add delay", Session(session_id="s-1"))

        assert feedback.intent == FeedbackIntent.ADD
        assert mock_tier1.calls == ["add delay"]


class TestContextSummary:
    def test_full_session(self, rack, base_patch):
        created = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        session = Session(
            session_id="s-1",
            created_at=created,
            rack_snapshot=rack,
            current_patch=base_patch,
            patch_history=[base_patch, base_patch],
            messages=[
                Message(role=MessageRole.USER, content="one"),
                Message(role=MessageRole.ASSISTANT, content="two"),
                Message(role=MessageRole.USER, content="three"),
                Message(role=MessageRole.USER, content="x" * 150),
            ],
        )

        summary = build_context_summary(session, now=created + timedelta(minutes=12))

        assert "Session age: 12 minutes" in summary
        assert "Messages so far: 4" in summary
        assert "Rack: 5 modules" in summary
        assert "lacks: distortion" in summary
        assert 'Current patch: "Deep Drone"' in summary
        assert "Previous versions: 2" in summary
        assert "- user: one" not in summary
        assert "- assistant: two" in summary
        assert "- user: " + "x" * 100 + "..." in summary

    def test_empty_session(self):
        summary = build_context_summary(Session(session_id="s-1"))
        assert "Rack: not provided" in summary
        assert "Current patch: none" in summary
        assert "Recent messages" not in summary
