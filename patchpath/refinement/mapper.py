# FILE: patchpath/refinement/mapper.py
"""
Modification Mapper: ParsedFeedback + Patch + rack -> PatchModification.

Matching runs against the rack's live module list (type OR name, case
insensitive substring), never a static catalog, so a modification can only
reference modules the user owns. What counts as "filter" or "reverb" comes
from the category vocabulary in config.categories.

Per intent:
- adjust:  every matching module gets the category's default delta for the
           direction (or the literal value when specific). No match -> empty.
- add:     first matching module (or a fallback-typed one, e.g. "effect")
           is fed from an amplifier-stage module. No amplifier -> empty.
- remove:  every current connection with an endpoint named like the target.
- replace: remove + add, confidence = min of the two.
- clarify: zero-effect, confidence 0.1.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from config.categories import (
    AMPLIFIER_CATEGORY,
    CATEGORY_VOCABULARY,
    CategorySpec,
    implied_direction,
    resolve_categories,
    target_tokens,
)
from patchpath.patches import (
    Connection,
    ConnectionImportance,
    InputEndpoint,
    OutputEndpoint,
    ParameterChange,
    Patch,
    PatchModification,
    RackInventory,
    RackModule,
    SignalType,
    new_connection_id,
)

from .schemas import FeedbackIntent, ParsedFeedback, Specificity

logger = logging.getLogger(__name__)

CLARIFY_DESCRIPTION = "Need clarification on what to change"
CLARIFY_CONFIDENCE = 0.1


class ModificationMapper:
    def __init__(
        self,
        vocabulary: Optional[Dict[str, CategorySpec]] = None,
        amplifier_category: str = AMPLIFIER_CATEGORY,
    ):
        self.vocabulary = vocabulary if vocabulary is not None else CATEGORY_VOCABULARY
        self.amplifier_category = amplifier_category

    def map(self, feedback: ParsedFeedback, patch: Patch, rack: RackInventory) -> PatchModification:
        logger.debug(
            f"[mapper] intent={feedback.intent.value} target={feedback.target!r} "
            f"specificity={feedback.specificity.value}"
        )
        if feedback.intent == FeedbackIntent.ADJUST:
            modification = self.map_adjustment(feedback, rack)
        elif feedback.intent == FeedbackIntent.ADD:
            modification = self.map_addition(feedback, patch, rack)
        elif feedback.intent == FeedbackIntent.REMOVE:
            modification = self.map_removal(feedback, patch)
        elif feedback.intent == FeedbackIntent.REPLACE:
            modification = self.map_replacement(feedback, patch, rack)
        else:
            modification = PatchModification(description=CLARIFY_DESCRIPTION, confidence=CLARIFY_CONFIDENCE)

        logger.info(
            f"[mapper] {modification.description!r}: +{len(modification.connections_added)} "
            f"-{len(modification.connections_removed)} ~{len(modification.parameter_changes)} "
            f"(confidence={modification.confidence})"
        )
        return modification

    # -------------------------------------------------------------------------
    # adjust
    # -------------------------------------------------------------------------

    def map_adjustment(self, feedback: ParsedFeedback, rack: RackInventory) -> PatchModification:
        target = feedback.target
        tokens = set(target_tokens(target))
        use_literal = feedback.specificity == Specificity.SPECIFIC and feedback.value is not None

        changes: List[ParameterChange] = []
        descriptions: List[str] = []

        for spec in resolve_categories(target, self.vocabulary):
            direction = implied_direction(target, spec) or (
                feedback.direction.value if feedback.direction else None
            )
            if direction is None:
                logger.debug(f"[mapper] No direction for {spec.name}, skipping")
                continue

            deltas = [
                d for d in spec.adjustments
                if d.direction == direction and (d.requires_term is None or d.requires_term in tokens)
            ]
            modules = rack.modules_matching(spec.module_keywords)
            for module in modules:
                for delta in deltas:
                    changes.append(ParameterChange(
                        module_id=module.id,
                        module_name=module.name,
                        parameter=delta.parameter,
                        old_value=delta.old_value,
                        new_value=str(feedback.value) if use_literal else delta.new_value,
                        reasoning=delta.reasoning,
                    ))
            if modules and deltas and direction in spec.descriptions:
                descriptions.append(spec.descriptions[direction])

        return PatchModification(
            description="; ".join(descriptions) if descriptions else f"Adjusted {target} parameters",
            parameter_changes=changes,
            confidence=feedback.confidence,
        )

    # -------------------------------------------------------------------------
    # add
    # -------------------------------------------------------------------------

    def _amplifier_source(self, patch: Patch, rack: RackInventory) -> Optional[RackModule]:
        """Prefer a VCA already carrying a primary cable, else the rack's first VCA."""
        amp = self.vocabulary.get(self.amplifier_category)
        if amp is None:
            return None
        amps = rack.modules_matching(amp.module_keywords)
        if not amps:
            return None
        primary_ids = {
            endpoint_id
            for conn in patch.connections
            if conn.importance == ConnectionImportance.PRIMARY
            for endpoint_id in (conn.from_.module_id, conn.to.module_id)
        }
        for module in amps:
            if module.id in primary_ids:
                return module
        return amps[0]

    def _destination(self, spec: CategorySpec, rack: RackInventory, source: RackModule) -> Optional[RackModule]:
        for module in rack.modules_matching(spec.module_keywords):
            if module.id != source.id:
                return module
        for module in rack.modules_of_type(spec.fallback_types) if spec.fallback_types else []:
            if module.id != source.id:
                return module
        return None

    def map_addition(self, feedback: ParsedFeedback, patch: Patch, rack: RackInventory) -> PatchModification:
        added: List[Connection] = []
        source = self._amplifier_source(patch, rack)
        if source is None:
            logger.warning("[mapper] No amplifier-stage module in rack; nothing to patch from")
        else:
            for spec in resolve_categories(feedback.target, self.vocabulary):
                if spec.name == self.amplifier_category:
                    continue
                destination = self._destination(spec, rack, source)
                if destination is None:
                    continue
                added.append(Connection(
                    id=new_connection_id(spec.name),
                    from_=OutputEndpoint(module_id=source.id, module_name=source.name, output_name="output"),
                    to=InputEndpoint(module_id=destination.id, module_name=destination.name, input_name="input"),
                    signal_type=SignalType.AUDIO,
                    importance=ConnectionImportance.MODULATION,
                    note=f"Added {spec.name} send from {source.name}",
                ))
                break  # first matching category wins

        return PatchModification(
            description=f"Added {feedback.target} to the patch",
            connections_added=added,
            confidence=feedback.confidence,
        )

    # -------------------------------------------------------------------------
    # remove / replace
    # -------------------------------------------------------------------------

    def map_removal(self, feedback: ParsedFeedback, patch: Patch) -> PatchModification:
        needles: List[str] = []
        for spec in resolve_categories(feedback.target, self.vocabulary):
            needles.extend(spec.module_keywords)
        if not needles and feedback.target and feedback.target != "general":
            needles.append(feedback.target.lower())

        removed: List[Connection] = []
        seen = set()
        for conn in patch.connections:
            if conn.id in seen:
                continue
            if any(conn.touches(n) for n in needles):
                removed.append(conn)
                seen.add(conn.id)

        return PatchModification(
            description=f"Removed {feedback.target} from the patch",
            connections_removed=removed,
            confidence=feedback.confidence,
        )

    def map_replacement(self, feedback: ParsedFeedback, patch: Patch, rack: RackInventory) -> PatchModification:
        removal = self.map_removal(feedback, patch)
        addition = self.map_addition(feedback, patch, rack)
        return PatchModification(
            description=f"Replaced {feedback.target} in the patch",
            connections_removed=removal.connections_removed,
            connections_added=addition.connections_added,
            confidence=min(removal.confidence, addition.confidence),
        )
