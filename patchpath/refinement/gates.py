# FILE: patchpath/refinement/gates.py
"""
Gates for the refinement pipeline.
- Clarification Gate: too vague (or explicitly "clarify") -> ask, don't touch the patch
- Feasibility Gate: "add X" where the rack has no X -> say so, don't touch the patch
"""
from __future__ import annotations
import logging
from typing import Dict, Optional

from config.categories import CATEGORY_VOCABULARY, CategorySpec, resolve_categories
from config.settings import DEFAULT_CLARIFY_THRESHOLD
from patchpath.patches import RackInventory

from .messages import clarification_message
from .schemas import (
    ClarificationGateResult,
    FeasibilityGateResult,
    FeedbackIntent,
    ParsedFeedback,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CLARIFICATION GATE
# =============================================================================

def check_clarification_gate(
    feedback: ParsedFeedback,
    feedback_text: str,
    threshold: float = DEFAULT_CLARIFY_THRESHOLD,
) -> ClarificationGateResult:
    """Blocks when intent is clarify OR confidence is under the threshold."""
    if feedback.intent == FeedbackIntent.CLARIFY:
        reason = "clarify_intent"
    elif feedback.confidence < threshold:
        reason = f"low_confidence ({feedback.confidence:.2f} < {threshold:.2f})"
    else:
        return ClarificationGateResult(passed=True, gate_name="clarification")

    logger.warning(f"[gate] Clarification needed: {reason} for {feedback_text[:50]!r}")
    return ClarificationGateResult(
        passed=False,
        gate_name="clarification",
        reason=reason,
        question=clarification_message(feedback_text),
    )


# =============================================================================
# FEASIBILITY GATE
# =============================================================================

def check_feasibility_gate(
    feedback: ParsedFeedback,
    rack: RackInventory,
    vocabulary: Optional[Dict[str, CategorySpec]] = None,
) -> FeasibilityGateResult:
    """
    Only `add` is checked: adjusting or removing something absent is a no-op,
    not an impossibility. Matching is on declared module type, so an
    effect-typed module satisfies reverb/delay/distortion.
    """
    if feedback.intent != FeedbackIntent.ADD:
        return FeasibilityGateResult(passed=True, gate_name="feasibility")

    vocab = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
    for spec in resolve_categories(feedback.target, vocab):
        if not spec.feasibility_checked:
            continue
        if not rack.has_type(spec.feasibility_keywords):
            reason = f"No {spec.name} module in rack"
            logger.warning(f"[gate] Infeasible: {reason} (target={feedback.target!r})")
            return FeasibilityGateResult(
                passed=False,
                gate_name="feasibility",
                reason=reason,
                missing_category=spec.name,
            )

    return FeasibilityGateResult(passed=True, gate_name="feasibility")
