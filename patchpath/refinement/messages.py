# FILE: patchpath/refinement/messages.py
"""User-facing text for every terminal refinement outcome. Plain strings, no markup."""
from __future__ import annotations

import re
from typing import List, Tuple

from patchpath.patches import Patch, PatchModification

# (pattern over the raw feedback, suggestions offered)
CLARIFICATION_TEMPLATES: List[Tuple[re.Pattern, List[str]]] = [
    (re.compile(r"better|good|nice", re.I), ["darker", "brighter", "more reverb", "faster"]),
    (re.compile(r"fix|wrong|problem", re.I), ["too dark", "too bright", "too complex", "too simple"]),
    (re.compile(r"change|different", re.I), ["darker", "brighter", "add delay", "remove reverb"]),
]

GENERIC_CLARIFICATION = (
    "I want to make sure I understand what you're looking for. "
    "Could you tell me more about what you'd like to change? For example:\n"
    "- Make it darker/brighter\n"
    "- Add more reverb/delay\n"
    "- Make it faster/slower\n"
    "- Add/remove specific effects"
)

START_FRESH_MESSAGE = "🔄 Starting fresh! What kind of sound would you like to create?"
NOTHING_TO_UNDO_MESSAGE = "There's no earlier version to go back to yet."
NO_PATCH_MESSAGE = "I need a patch to refine first. Describe the sound you want and I'll generate one."
NO_RACK_MESSAGE = "I need your rack first. Share a ModularGrid link or a photo of your rack."
VALIDATION_FAILED_MESSAGE = (
    "Sorry, I came up with a change that doesn't fit your rack. "
    "Could you try describing it another way?"
)
CONFLICT_MESSAGE = "This patch was changed in another window while I was working. Please try that again."
GENERIC_ERROR_MESSAGE = "Sorry, I had trouble understanding that request. Could you try rephrasing it?"
SESSION_EXPIRED_MESSAGE = "This conversation has expired. Let's start a new one: what kind of sound are you after?"


def clarification_message(feedback_text: str) -> str:
    for pattern, suggestions in CLARIFICATION_TEMPLATES:
        if pattern.search(feedback_text):
            bullets = "\n- ".join(suggestions)
            return (
                "I'd love to help! Could you be more specific? For example:\n"
                f"- {bullets}\n\nWhat exactly would you like to change?"
            )
    return GENERIC_CLARIFICATION


def impossible_request_message(reason: str) -> str:
    return (
        f"I can't do that because {reason}. "
        "Would you like me to suggest some modules that could add that capability to your rack?"
    )


def committed_message(modification: PatchModification) -> str:
    if modification.is_empty:
        return f"✨ {modification.description} (nothing in your rack needed changing)"
    return f"✨ {modification.description}"


def undo_message(restored: Patch) -> str:
    return f'↩️ Reverted to previous version: "{restored.metadata.title}"'


def generated_patch_message(patch: Patch) -> str:
    return f'🎛️ Here\'s "{patch.metadata.title}". Tell me what you\'d like to change.'
