# FILE: patchpath/refinement/apply.py
"""
apply_modification(patch, modification) -> new Patch

Pure: the input patch and modification are never mutated. Added
connections get fresh ids on every application, so applying the same
modification twice never produces duplicate ids.
"""
from __future__ import annotations

from patchpath.patches import (
    ParameterSuggestion,
    Patch,
    PatchModification,
    new_connection_id,
    utcnow,
)


def _id_prefix(connection_id: str) -> str:
    head, sep, _ = connection_id.rpartition("-")
    return head if sep and head else "conn"


def apply_modification(patch: Patch, modification: PatchModification) -> Patch:
    updated = patch.model_copy(deep=True)

    removed_ids = {conn.id for conn in modification.connections_removed}
    connections = [conn for conn in updated.connections if conn.id not in removed_ids]

    for conn in modification.connections_added:
        connections.append(conn.model_copy(deep=True, update={"id": new_connection_id(_id_prefix(conn.id))}))
    updated.connections = connections

    for change in modification.parameter_changes:
        existing = updated.find_suggestion(change.module_id, change.parameter)
        if existing is not None:
            existing.value = change.new_value
            if change.reasoning:
                existing.reasoning = change.reasoning
        else:
            updated.parameter_suggestions.append(ParameterSuggestion(
                module_id=change.module_id,
                module_name=change.module_name,
                parameter=change.parameter,
                value=change.new_value,
                reasoning=change.reasoning,
            ))

    updated.saved = False
    updated.updated_at = utcnow()
    return updated
