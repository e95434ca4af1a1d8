# FILE: patchpath/refinement/schemas.py
"""
Pydantic models for the refinement pipeline.
Defines feedback intents, parsed feedback, the oracle payload contract,
validation reports and the refinement result.
"""
from __future__ import annotations
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from patchpath.patches import Patch, PatchModification, utcnow


class FeedbackIntent(str, Enum):
    """Closed set of feedback intents. Anything else is a parse failure."""
    ADJUST = "adjust"      # change a parameter of something already patched
    ADD = "add"            # bring a new module into the signal path
    REMOVE = "remove"      # take connections out
    REPLACE = "replace"    # swap one thing for another
    CLARIFY = "clarify"    # we don't know what they want


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class Specificity(str, Enum):
    VAGUE = "vague"          # "darker" -> default deltas
    SPECIFIC = "specific"    # "cutoff to 2kHz" -> literal value


class SessionCommand(str, Enum):
    """Conversation-level commands resolved by Tier 0, not by the mapper."""
    UNDO = "undo"
    START_FRESH = "start_fresh"
    SAVE = "save"


class LatencyTier(str, Enum):
    """Which cost tier resolved this feedback?"""
    TIER_0_RULES = "tier_0"       # Pure regex/string, no oracle
    TIER_1_CLASSIFIER = "tier_1"  # Oracle call
    FALLBACK = "fallback"         # Oracle failed or answered garbage


class ParsedFeedback(BaseModel):
    """Structured interpretation of one user utterance."""
    intent: FeedbackIntent
    target: str = "general"
    direction: Optional[Direction] = None
    specificity: Specificity = Specificity.VAGUE
    value: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""  # logging/UX only, never read by control flow

    command: Optional[SessionCommand] = None
    latency_tier: LatencyTier = LatencyTier.TIER_1_CLASSIFIER
    rule_name: Optional[str] = None


def fallback_feedback(reason: str = "Classification failed") -> ParsedFeedback:
    """The fixed low-confidence value used whenever the oracle lets us down."""
    return ParsedFeedback(
        intent=FeedbackIntent.ADJUST,
        target="general",
        specificity=Specificity.VAGUE,
        confidence=0.3,
        reasoning=reason,
        latency_tier=LatencyTier.FALLBACK,
    )


class OracleFeedbackPayload(BaseModel):
    """
    Shape the oracle must return. Validated strictly at the boundary:
    unknown intent/specificity/direction strings fail validation.
    """
    intent: FeedbackIntent
    target: str = "general"
    direction: Optional[Direction] = None
    specificity: Specificity = Specificity.VAGUE
    value: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""

    @field_validator("target", mode="before")
    @classmethod
    def _blank_target(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return "general"
        return v

    @field_validator("direction", "value", mode="before")
    @classmethod
    def _empty_is_none(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("", "null", "none"):
            return None
        return v

    def to_feedback(self) -> ParsedFeedback:
        return ParsedFeedback(
            intent=self.intent,
            target=self.target.strip(),
            direction=self.direction,
            specificity=self.specificity,
            value=self.value,
            confidence=self.confidence,
            reasoning=self.reasoning,
            latency_tier=LatencyTier.TIER_1_CLASSIFIER,
        )


class RefinementStage(str, Enum):
    """Orchestrator states. Terminal ones end a refine() call."""
    START = "start"
    CLASSIFYING = "classifying"
    CLARIFYING = "clarifying"          # terminal
    CHECKING_FEASIBILITY = "checking_feasibility"
    REJECTED = "rejected"              # terminal
    MAPPING = "mapping"
    VALIDATING = "validating"
    APPLYING = "applying"
    COMMITTED = "committed"            # terminal
    COMMAND = "command"                # terminal (undo / start fresh / save)
    FAILED = "failed"                  # terminal (unexpected error, retries exhausted)


class ValidationReport(BaseModel):
    valid: bool
    issues: List[str] = Field(default_factory=list)


class GateResult(BaseModel):
    """Result of passing through a gate."""
    passed: bool
    gate_name: str
    reason: Optional[str] = None


class ClarificationGateResult(GateResult):
    question: Optional[str] = None


class FeasibilityGateResult(GateResult):
    """passed=False means the rack cannot do what was asked."""
    missing_category: Optional[str] = None


class RefinementResult(BaseModel):
    """Outcome of one refine() call. Exactly one terminal outcome holds."""
    success: bool
    message: str = Field(min_length=1)
    updated_patch: Optional[Patch] = None
    modification: Optional[PatchModification] = None

    needs_clarification: bool = False
    impossible_request: bool = False
    impossible_reason: Optional[str] = None

    stage: RefinementStage
    feedback: Optional[ParsedFeedback] = None
    validation_issues: List[str] = Field(default_factory=list)
    command: Optional[SessionCommand] = None
    timestamp: datetime = Field(default_factory=utcnow)
