# FILE: config/categories.py
"""Category vocabulary - Single source of truth.

Feedback targets ("darker", "filter_cutoff", "more reverb") are resolved to a
category, and a category is resolved to concrete rack modules by substring
matching on the module's declared type and name. The vocabulary is DATA:
callers working with a different rack domain (e.g. video synthesis) pass
their own mapping to the mapper, the feasibility gate and the classifier.

Per category:
  - module_keywords: matched against module type AND name (adjust/add/remove)
  - feasibility_keywords: matched against module type only ("can the rack do it?")
  - fallback_types: generic module types that can stand in (e.g. "effect")
  - target_keywords: tokens in the feedback target that select the category
  - increase_terms / decrease_terms: target words implying a direction
  - adjustments: default parameter deltas for vague feedback
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class ParameterDelta:
    """Default change applied when feedback is vague."""
    parameter: str
    direction: str  # "increase" | "decrease"
    old_value: str
    new_value: str
    reasoning: str
    requires_term: Optional[str] = None  # only when this word is in the target


@dataclass(frozen=True)
class CategorySpec:
    name: str
    module_keywords: Tuple[str, ...]
    feasibility_keywords: Tuple[str, ...] = ()
    fallback_types: Tuple[str, ...] = ()
    target_keywords: Tuple[str, ...] = ()
    increase_terms: Tuple[str, ...] = ()
    decrease_terms: Tuple[str, ...] = ()
    adjustments: Tuple[ParameterDelta, ...] = ()
    descriptions: Dict[str, str] = field(default_factory=dict)

    @property
    def feasibility_checked(self) -> bool:
        return bool(self.feasibility_keywords)


# =============================================================================
# Audio rack vocabulary (default)
# =============================================================================

CATEGORY_VOCABULARY: Dict[str, CategorySpec] = {
    "filter": CategorySpec(
        name="filter",
        module_keywords=("filter", "vcf"),
        feasibility_keywords=("filter", "vcf"),
        target_keywords=("filter", "cutoff", "resonance", "darker", "brighter", "dark", "bright"),
        increase_terms=("brighter", "bright", "open"),
        decrease_terms=("darker", "dark", "close", "muffled"),
        adjustments=(
            ParameterDelta("cutoff", "decrease", "5kHz", "3.5kHz", "Lowered filter cutoff for darker sound"),
            ParameterDelta("cutoff", "increase", "5kHz", "6.5kHz", "Raised filter cutoff for brighter sound"),
        ),
        descriptions={
            "decrease": "Lowered filter cutoff for a darker sound",
            "increase": "Raised filter cutoff for a brighter sound",
        },
    ),
    "reverb": CategorySpec(
        name="reverb",
        module_keywords=("reverb",),
        feasibility_keywords=("reverb", "effect"),
        fallback_types=("effect",),
        target_keywords=("reverb", "space", "wet"),
        increase_terms=("more",),
        decrease_terms=("less", "dry"),
        adjustments=(
            ParameterDelta("send", "increase", "50%", "80%", "Increased reverb send amount"),
            ParameterDelta("decay", "increase", "4s", "8s", "Increased reverb decay time", requires_term="decay"),
            ParameterDelta("send", "decrease", "80%", "30%", "Decreased reverb send amount"),
        ),
        descriptions={
            "increase": "Increased reverb send to 80%",
            "decrease": "Decreased reverb send to 30%",
        },
    ),
    "delay": CategorySpec(
        name="delay",
        module_keywords=("delay", "echo"),
        feasibility_keywords=("delay", "effect"),
        fallback_types=("effect",),
        target_keywords=("delay", "echo"),
        increase_terms=("more",),
        decrease_terms=("less",),
        adjustments=(
            ParameterDelta("feedback", "increase", "30%", "60%", "Increased delay feedback for longer repeats"),
            ParameterDelta("feedback", "decrease", "60%", "15%", "Decreased delay feedback for fewer repeats"),
        ),
        descriptions={
            "increase": "Increased delay feedback to 60%",
            "decrease": "Decreased delay feedback to 15%",
        },
    ),
    "distortion": CategorySpec(
        name="distortion",
        module_keywords=("distortion", "overdrive", "fuzz", "waveshaper"),
        feasibility_keywords=("distortion", "effect"),
        fallback_types=("effect",),
        target_keywords=("distortion", "drive", "saturation", "aggressive", "grit"),
        increase_terms=("more", "aggressive"),
        decrease_terms=("less", "clean", "smoother"),
        adjustments=(
            ParameterDelta("drive", "increase", "30%", "60%", "Increased drive for more saturation"),
            ParameterDelta("drive", "decrease", "60%", "20%", "Reduced drive for a cleaner tone"),
        ),
        descriptions={
            "increase": "Increased distortion drive",
            "decrease": "Reduced distortion drive",
        },
    ),
    "amplifier": CategorySpec(
        name="amplifier",
        module_keywords=("vca", "amplifier"),
        target_keywords=("volume", "level", "louder", "softer", "quieter", "loud", "amp"),
        increase_terms=("louder", "loud"),
        decrease_terms=("softer", "quieter"),
        adjustments=(
            ParameterDelta("level", "increase", "12 o'clock", "3 o'clock", "Increased VCA level for louder output"),
            ParameterDelta("level", "decrease", "3 o'clock", "10 o'clock", "Decreased VCA level for softer output"),
        ),
        descriptions={
            "increase": "Increased VCA levels for louder output",
            "decrease": "Decreased VCA levels for softer output",
        },
    ),
}

# Category whose modules receive new effect sends ("add delay" patches VCA -> delay)
AMPLIFIER_CATEGORY = "amplifier"


def target_tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def resolve_categories(
    target: str,
    vocabulary: Optional[Dict[str, CategorySpec]] = None,
) -> List[CategorySpec]:
    """Return every category a feedback target refers to, in vocabulary order."""
    vocab = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
    target_lower = (target or "").lower()
    tokens = target_tokens(target_lower)
    matched: List[CategorySpec] = []
    for spec in vocab.values():
        if spec.name in target_lower or any(kw in tokens for kw in spec.target_keywords):
            matched.append(spec)
    return matched


def get_category(name: str, vocabulary: Optional[Dict[str, CategorySpec]] = None) -> Optional[CategorySpec]:
    vocab = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
    return vocab.get(name)


def implied_direction(target: str, spec: CategorySpec) -> Optional[str]:
    """Direction implied by the words of a target ("darker" -> decrease)."""
    tokens = target_tokens(target or "")
    if any(t in tokens for t in spec.decrease_terms):
        return "decrease"
    if any(t in tokens for t in spec.increase_terms):
        return "increase"
    return None


def feasibility_categories(vocabulary: Optional[Dict[str, CategorySpec]] = None) -> Iterable[CategorySpec]:
    vocab = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
    return [spec for spec in vocab.values() if spec.feasibility_checked]
