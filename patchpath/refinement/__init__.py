# FILE: patchpath/refinement/__init__.py
"""
Refinement pipeline: natural-language feedback -> validated patch mutation.

Usage:
    from patchpath.refinement import RefinementOrchestrator
    from patchpath.sessions import build_session_store

    orchestrator = RefinementOrchestrator(build_session_store())
    result = await orchestrator.refine(session_id, "make it darker")
    if result.needs_clarification:
        ...
"""

from .schemas import (
    FeedbackIntent,
    Direction,
    Specificity,
    SessionCommand,
    LatencyTier,
    ParsedFeedback,
    OracleFeedbackPayload,
    RefinementStage,
    RefinementResult,
    ValidationReport,
    GateResult,
    ClarificationGateResult,
    FeasibilityGateResult,
    fallback_feedback,
)
from .tier0_rules import (
    Tier0RuleResult,
    tier0_classify,
    is_gibberish,
    is_greeting,
)
from .tier1_classifier import (
    Tier1Classifier,
    MockTier1Classifier,
    OracleClient,
    OracleResponseError,
    extract_json_object,
    parse_oracle_response,
)
from .classifier import (
    FeedbackClassifier,
    build_context_summary,
)
from .gates import (
    check_clarification_gate,
    check_feasibility_gate,
)
from .mapper import ModificationMapper
from .validator import (
    validate_modification,
    validate_patch_against_rack,
)
from .apply import apply_modification
from .history import PatchHistory
from .special_intents import (
    SaveIntentResult,
    detect_save_intent,
    detect_start_fresh_intent,
    detect_undo_intent,
    detect_variations_intent,
    generate_patch_name,
    generate_save_confirmation,
)
from .orchestrator import RefinementOrchestrator

__all__ = [
    # Schemas
    "FeedbackIntent",
    "Direction",
    "Specificity",
    "SessionCommand",
    "LatencyTier",
    "ParsedFeedback",
    "OracleFeedbackPayload",
    "RefinementStage",
    "RefinementResult",
    "ValidationReport",
    "GateResult",
    "ClarificationGateResult",
    "FeasibilityGateResult",
    "fallback_feedback",
    # Tier 0
    "Tier0RuleResult",
    "tier0_classify",
    "is_gibberish",
    "is_greeting",
    # Tier 1
    "Tier1Classifier",
    "MockTier1Classifier",
    "OracleClient",
    "OracleResponseError",
    "extract_json_object",
    "parse_oracle_response",
    # Classifier
    "FeedbackClassifier",
    "build_context_summary",
    # Gates
    "check_clarification_gate",
    "check_feasibility_gate",
    # Mapping / validation / application
    "ModificationMapper",
    "validate_modification",
    "validate_patch_against_rack",
    "apply_modification",
    # History
    "PatchHistory",
    # Special intents
    "SaveIntentResult",
    "detect_save_intent",
    "detect_start_fresh_intent",
    "detect_undo_intent",
    "detect_variations_intent",
    "generate_patch_name",
    "generate_save_confirmation",
    # Orchestrator
    "RefinementOrchestrator",
]
