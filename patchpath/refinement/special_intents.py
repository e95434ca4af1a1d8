# FILE: patchpath/refinement/special_intents.py
"""
Conversation-level intents: save, undo, start fresh, variations.

These are keyword detectors, not classifiers: a phrase anywhere in the
message fires. They are for callers that already know the user is giving a
command (for example a generation flow deciding between variations and a
fresh patch). Tier 0 matches whole-message commands itself and borrows only
detect_save_intent for its confidence. The orchestrator uses the
naming/confirmation helpers when a save is carried out.

Keywords match on word boundaries ("no" must not fire on "know", "ok" must
not fire on "token").
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from patchpath.patches import PatchModification

logger = logging.getLogger(__name__)


# =============================================================================
# KEYWORDS
# =============================================================================

SAVE_KEYWORDS = [
    # Direct save requests
    "save", "save this", "save it", "keep this", "keep it", "bookmark", "bookmark this",
    # Praise that implies save
    "perfect", "great", "love it", "i love it", "i like it", "looks good", "that works",
    "this is good", "this works", "exactly what i wanted",
    # Completion
    "done", "finished", "that's it", "that's perfect", "that's great", "that's good",
    "i'm done", "i'm finished",
    # Approval
    "yes", "yeah", "yep", "sure", "ok", "okay", "sounds good", "sounds perfect", "sounds great",
]

NO_SAVE_KEYWORDS = [
    "no", "nope", "not yet", "not now", "wait", "hold on", "not quite", "almost", "close",
    "getting there", "not right", "not good", "not working", "try again", "different",
    "something else", "another", "variation", "change", "modify", "adjust",
]

DIRECT_SAVE = {"save", "save this", "save it", "bookmark", "bookmark this"}
PRAISE = {"perfect", "great", "love it", "i love it", "i like it"}
BARE_APPROVAL = {"yes", "yeah", "ok", "okay", "sounds good"}

SHORT_POSITIVE = {"yes", "yeah", "yep", "ok", "okay", "good", "great", "perfect"}

START_FRESH_KEYWORDS = [
    "start fresh", "start over", "new patch", "different patch", "something else",
    "try again", "reset", "clear", "begin again", "from scratch",
]

UNDO_KEYWORDS = [
    "undo", "go back", "revert", "previous version", "put it back", "change it back",
    "that was better before", "undo that", "back to the last one",
]

VARIATIONS_KEYWORDS = [
    "variations", "variation", "other options", "other choices", "different versions",
    "alternatives", "show me more", "what else", "try another", "another one",
    "different approach",
]


def _normalize(text: str) -> str:
    # Curly apostrophes show up from phone keyboards
    return text.lower().replace("’", "'").strip()


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![\w']){re.escape(phrase)}(?![\w'])", text) is not None


def _first_match(text: str, keywords: Iterable[str]):
    for kw in keywords:
        if _contains_phrase(text, kw):
            return kw
    return None


# =============================================================================
# SAVE
# =============================================================================

@dataclass
class SaveIntentResult:
    detected: bool
    confidence: float
    reasoning: str


def detect_save_intent(message: str) -> SaveIntentResult:
    """
    Does the user want to keep the current patch?

    Negative phrases win outright. Otherwise the strongest save keyword sets
    the confidence: 0.95 direct, 0.85 praise, 0.6 bare approval, 0.7 the
    rest; +0.1 if the message ends with it, +0.05 for closing punctuation.
    """
    text = _normalize(message)

    blocker = _first_match(text, NO_SAVE_KEYWORDS)
    if blocker:
        return SaveIntentResult(
            detected=False,
            confidence=0.9,
            reasoning=f'Message contains "{blocker}" which indicates not wanting to save',
        )

    bare = text.rstrip(".!? ")
    best_confidence = 0.0
    best_match = ""

    for keyword in SAVE_KEYWORDS:
        if not _contains_phrase(text, keyword):
            continue
        if keyword in DIRECT_SAVE:
            confidence = 0.95
        elif keyword in PRAISE:
            confidence = 0.85
        elif keyword in BARE_APPROVAL:
            confidence = 0.6
        else:
            confidence = 0.7

        if bare == keyword or bare.endswith(keyword):
            confidence += 0.1
        if text.endswith(".") or text.endswith("!"):
            confidence += 0.05

        confidence = min(1.0, round(confidence, 2))
        if confidence > best_confidence:
            best_confidence = confidence
            best_match = keyword

    if best_confidence == 0.0 and len(text) <= 10 and bare in SHORT_POSITIVE:
        best_confidence = 0.7
        best_match = bare

    detected = best_confidence > 0.5
    reasoning = (
        f'Detected "{best_match}" with {best_confidence} confidence' if detected else "No save intent detected"
    )
    logger.debug(f"[special_intents] save: detected={detected} confidence={best_confidence} match={best_match!r}")
    return SaveIntentResult(detected=detected, confidence=best_confidence, reasoning=reasoning)


# =============================================================================
# OTHER COMMANDS
# =============================================================================

def detect_start_fresh_intent(message: str) -> bool:
    return _first_match(_normalize(message), START_FRESH_KEYWORDS) is not None


def detect_undo_intent(message: str) -> bool:
    return _first_match(_normalize(message), UNDO_KEYWORDS) is not None


def detect_variations_intent(message: str) -> bool:
    return _first_match(_normalize(message), VARIATIONS_KEYWORDS) is not None


# =============================================================================
# NAMING + CONFIRMATION
# =============================================================================

# (substring of modification description, descriptor)
_DESCRIPTOR_RULES = [
    ("darker", "Darker"),
    ("brighter", "Brighter"),
    ("reverb", "Reverb Heavy"),
    ("delay", "Delayed"),
    ("louder", "Loud"),
    ("softer", "Soft"),
    ("faster", "Fast"),
    ("slower", "Slow"),
    ("aggressive", "Aggressive"),
    ("smooth", "Smooth"),
    ("distortion", "Distorted"),
    ("modulation", "Modulated"),
]

_MOOD_PATTERNS = [
    (re.compile(r"dark|darker|darkness", re.I), "Dark"),
    (re.compile(r"bright|brighter|brightness", re.I), "Bright"),
    (re.compile(r"ambient|atmospheric|ethereal", re.I), "Ambient"),
    (re.compile(r"aggressive|harsh|intense", re.I), "Aggressive"),
    (re.compile(r"smooth|gentle|soft", re.I), "Smooth"),
    (re.compile(r"experimental|weird|strange", re.I), "Experimental"),
    (re.compile(r"melodic|musical|tuneful", re.I), "Melodic"),
    (re.compile(r"rhythmic|percussive|driving", re.I), "Rhythmic"),
    (re.compile(r"minimal|simple|clean", re.I), "Minimal"),
    (re.compile(r"complex|layered|rich", re.I), "Complex"),
]

MAX_PATCH_NAME = 80


def _mood_words(conversation: Sequence[str]) -> List[str]:
    context = " ".join(conversation).lower()
    moods: List[str] = []
    for pattern, mood in _MOOD_PATTERNS:
        if pattern.search(context) and mood not in moods:
            moods.append(mood)
    return moods[:2]


def generate_patch_name(
    original_name: str,
    modifications: Sequence[PatchModification],
    conversation: Sequence[str] = (),
) -> str:
    """
    "Deep Drone" + [darker, more reverb] -> "Deep Drone (Darker, Reverb Heavy)".

    Up to 3 descriptors from modification descriptions; without any, up to 2
    mood words from the conversation. Capped at 80 chars.
    """
    descriptors: List[str] = []
    for mod in modifications:
        desc = mod.description.lower()
        for needle, descriptor in _DESCRIPTOR_RULES:
            if needle in desc and descriptor not in descriptors:
                descriptors.append(descriptor)
    descriptors = descriptors[:3]

    words = descriptors or _mood_words(conversation)
    name = f"{original_name} ({', '.join(words)})" if words else original_name

    if len(name) > MAX_PATCH_NAME:
        name = name[: MAX_PATCH_NAME - 3] + "..."
    logger.info(f"[special_intents] Patch name: {original_name!r} -> {name!r}")
    return name


def generate_save_confirmation(patch_name: str, modifications: Sequence[PatchModification]) -> str:
    count = len(modifications)
    lines = [f'✅ Saved as "{patch_name}" to your Cookbook!', ""]
    if count:
        lines.append(f"This patch includes {count} refinement{'s' if count > 1 else ''}:")
        for mod in modifications[:3]:
            lines.append(f"• {mod.description}")
        if count > 3:
            lines.append(f"• ...and {count - 3} more")
        lines.append("")
    lines.append("Want to try another variation or start fresh?")
    return "\n".join(lines)
