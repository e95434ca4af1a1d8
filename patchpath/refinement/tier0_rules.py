# FILE: patchpath/refinement/tier0_rules.py
"""
Tier 0: Pure rule-based feedback classification.
No oracle calls. Fastest tier.

Handles:
- Gibberish (too short, consonant-only ALL CAPS runs, key mashing)
- Greetings / pleasantries ("hi", "thanks")
- Undo ("undo that", "go back")
- Start fresh ("start over", "new patch")
- Explicit save ("save this", "perfect!")

Everything it matches comes back with confidence >= 0.9. Anything else is
left for Tier 1.
"""
from __future__ import annotations
import logging
import re
from typing import Optional

from .schemas import FeedbackIntent, LatencyTier, ParsedFeedback, SessionCommand
from .special_intents import detect_save_intent

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 3
SAVE_CONFIDENCE_FLOOR = 0.9

_CONSONANT_CAPS_RUN = re.compile(r"[B-DF-HJ-NP-TV-Z]{5,}")
_REPEATED_CHAR_RUN = re.compile(r"(.)\1{4,}")

GREETING_PATTERNS = [
    r"^(hi|hey|hello|yo|hiya|howdy)( there)?[!. ]*$",
    r"^good (morning|afternoon|evening)[!. ]*$",
    r"^(thanks|thank you|thx|cheers|ty)( so much| a lot)?[!. ]*$",
    r"^(cool|nice|neat|wow|lol|haha)[!. ]*$",
]

# Commands must be the whole utterance: "reset the cutoff" is feedback.
UNDO_PATTERNS = [
    r"^(please )?(undo|revert)( that| it| the last (change|one))?( please)?[!. ]*$",
    r"^(can we |let's |lets )?go back( please)?[!.? ]*$",
    r"^(put|change) it back( please)?[!. ]*$",
    r"^that was better before[!. ]*$",
]

START_FRESH_PATTERNS = [
    r"^(let's |lets )?(start (fresh|over)|begin again|reset|clear)( please)?[!. ]*$",
    r"^(let's |lets )?(make |try )?(a )?(new|different) patch( please)?[!. ]*$",
    r"^(start )?from scratch[!. ]*$",
]

SAVE_PATTERNS = [
    r"^(please )?(save|bookmark|keep)( this| it)?( please)?[!. ]*$",
    r"^(perfect|great|love it|i love it|exactly what i wanted)[!. ]*$",
    r"^that's (it|perfect|great)[!. ]*$",
]


# =============================================================================
# TIER 0 RULE ENGINE
# =============================================================================

class Tier0RuleResult:
    """Result from Tier 0 rule matching."""

    def __init__(
        self,
        matched: bool,
        feedback: Optional[ParsedFeedback] = None,
        rule_name: Optional[str] = None,
    ):
        self.matched = matched
        self.feedback = feedback
        self.rule_name = rule_name


def _clarify(rule_name: str, reason: str) -> Tier0RuleResult:
    return Tier0RuleResult(
        matched=True,
        rule_name=rule_name,
        feedback=ParsedFeedback(
            intent=FeedbackIntent.CLARIFY,
            target="general",
            confidence=0.95,
            reasoning=reason,
            latency_tier=LatencyTier.TIER_0_RULES,
            rule_name=rule_name,
        ),
    )


def _command(command: SessionCommand, rule_name: str, confidence: float, reason: str) -> Tier0RuleResult:
    return Tier0RuleResult(
        matched=True,
        rule_name=rule_name,
        feedback=ParsedFeedback(
            intent=FeedbackIntent.CLARIFY,
            target=command.value,
            confidence=max(SAVE_CONFIDENCE_FLOOR, confidence),
            reasoning=reason,
            command=command,
            latency_tier=LatencyTier.TIER_0_RULES,
            rule_name=rule_name,
        ),
    )


def is_gibberish(text: str) -> Optional[str]:
    """Return the name of the heuristic that fired, or None."""
    stripped = text.strip()
    if len(stripped) < MIN_TEXT_LENGTH:
        return "too_short"
    if _CONSONANT_CAPS_RUN.search(stripped):
        return "caps_no_vowels"
    if _REPEATED_CHAR_RUN.search(stripped):
        return "repeated_chars"
    return None


def _normalize(text: str) -> str:
    # Curly apostrophes show up from phone keyboards
    return text.strip().lower().replace("’", "'")


def _matches_whole(text: str, patterns) -> bool:
    lowered = _normalize(text)
    return any(re.match(p, lowered) for p in patterns)


def is_greeting(text: str) -> bool:
    return _matches_whole(text, GREETING_PATTERNS)


def tier0_classify(text: str) -> Tier0RuleResult:
    """
    Attempt to classify feedback using pure rules.

    Order of checks:
    1. Gibberish heuristics
    2. Greetings / pleasantries
    3. Undo
    4. Start fresh
    5. Explicit save
    6. No match (needs Tier 1)

    Commands only match when they are the whole message, so "reset the
    filter cutoff" or "add delay, that would be great" go to Tier 1.
    """
    # 1. Gibberish
    heuristic = is_gibberish(text)
    if heuristic:
        logger.info(f"[tier0] Gibberish ({heuristic}): {text[:30]!r}")
        return _clarify(f"gibberish_{heuristic}", f"Input looks like gibberish ({heuristic})")

    # 2. Greetings
    if is_greeting(text):
        logger.info(f"[tier0] Greeting: {text[:30]!r}")
        return _clarify("greeting", "Greeting, not patch feedback")

    # 3. Undo
    if _matches_whole(text, UNDO_PATTERNS):
        logger.info(f"[tier0] Undo: {text[:30]!r}")
        return _command(SessionCommand.UNDO, "undo", 0.95, "Explicit undo request")

    # 4. Start fresh
    if _matches_whole(text, START_FRESH_PATTERNS):
        logger.info(f"[tier0] Start fresh: {text[:30]!r}")
        return _command(SessionCommand.START_FRESH, "start_fresh", 0.95, "Explicit start-fresh request")

    # 5. Save ("ok" alone is not a save)
    if _matches_whole(text, SAVE_PATTERNS):
        save = detect_save_intent(text)
        logger.info(f"[tier0] Save ({save.confidence}): {text[:30]!r}")
        return _command(SessionCommand.SAVE, "save", save.confidence, save.reasoning)

    return Tier0RuleResult(matched=False)
