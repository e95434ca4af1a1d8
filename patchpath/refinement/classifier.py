# FILE: patchpath/refinement/classifier.py
"""
Feedback Classifier: raw text + session -> ParsedFeedback.

Flow:
1. Tier 0 rules (no oracle). Hit -> return immediately.
2. Build a context summary from the session.
3. Tier 1 oracle. Failures are already folded into the fallback there.

classify() never raises for oracle trouble; the caller always receives a
well-typed ParsedFeedback.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from config.categories import CATEGORY_VOCABULARY, CategorySpec
from patchpath.sessions import Session

from .schemas import ParsedFeedback
from .tier0_rules import tier0_classify
from .tier1_classifier import Tier1Classifier

logger = logging.getLogger(__name__)

CONTEXT_MESSAGE_COUNT = 3
CONTEXT_MESSAGE_CHARS = 100


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def build_context_summary(
    session: Session,
    vocabulary: Optional[Dict[str, CategorySpec]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Short plain-text picture of the session for the oracle prompt."""
    vocab = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
    now = now or datetime.now(timezone.utc)
    age_minutes = max(0, int((now - session.created_at).total_seconds() // 60))

    lines: List[str] = [
        f"Session age: {age_minutes} minutes",
        f"Messages so far: {len(session.messages)}",
        f"Demo mode: {'yes' if session.demo_mode else 'no'}",
    ]

    if session.rack_snapshot is not None:
        rack = session.rack_snapshot
        flags = rack.capability_flags(vocab)
        has = ", ".join(name for name, present in flags.items() if present) or "none"
        missing = ", ".join(name for name, present in flags.items() if not present) or "none"
        lines.append(f"Rack: {len(rack.modules)} modules (has: {has}; lacks: {missing})")
    else:
        lines.append("Rack: not provided")

    if session.current_patch is not None:
        lines.append(f'Current patch: "{session.current_patch.metadata.title}"')
    else:
        lines.append("Current patch: none")
    lines.append(f"Previous versions: {len(session.patch_history)}")

    recent = session.recent_messages(CONTEXT_MESSAGE_COUNT)
    if recent:
        lines.append("Recent messages:")
        for message in recent:
            lines.append(f"- {message.role.value}: {_truncate(message.content, CONTEXT_MESSAGE_CHARS)}")

    return "\n".join(lines)


class FeedbackClassifier:
    """
    Two-tier classifier.

    Usage:
        classifier = FeedbackClassifier()
        feedback = await classifier.classify("darker please", session)
    """

    def __init__(
        self,
        tier1: Optional[Tier1Classifier] = None,
        vocabulary: Optional[Dict[str, CategorySpec]] = None,
    ):
        self._tier1 = tier1 or Tier1Classifier()
        self._vocabulary = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY

    async def classify(self, text: str, session: Session) -> ParsedFeedback:
        tier0 = tier0_classify(text)
        if tier0.matched and tier0.feedback is not None:
            logger.debug(f"[classifier] Tier 0 resolved via {tier0.rule_name}")
            return tier0.feedback

        summary = build_context_summary(session, self._vocabulary)
        return await self._tier1.classify(
            text,
            context_summary=summary,
            patch=session.current_patch,
            rack=session.rack_snapshot,
        )
