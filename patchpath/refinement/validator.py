# FILE: patchpath/refinement/validator.py
"""
Referential integrity for a proposed modification.

Every added connection endpoint and every parameter change must name a
module that exists in the rack. Removals must name connections that exist
in the current patch. A failure here means the mapper produced something
inconsistent; it is never the user's fault.
"""
from __future__ import annotations

import logging
from typing import List

from patchpath.patches import Patch, PatchModification, RackInventory

from .schemas import ValidationReport

logger = logging.getLogger(__name__)


def validate_modification(
    modification: PatchModification,
    patch: Patch,
    rack: RackInventory,
) -> ValidationReport:
    issues: List[str] = []

    for conn in modification.connections_added:
        if not rack.has_module(conn.from_.module_id):
            issues.append(f"Source module {conn.from_.module_name} ({conn.from_.module_id}) not found in rack")
        if not rack.has_module(conn.to.module_id):
            issues.append(f"Target module {conn.to.module_name} ({conn.to.module_id}) not found in rack")

    for change in modification.parameter_changes:
        if not rack.has_module(change.module_id):
            issues.append(f"Module {change.module_name} ({change.module_id}) not found in rack")

    existing = {conn.id for conn in patch.connections}
    for conn in modification.connections_removed:
        if conn.id not in existing:
            issues.append(f"Connection {conn.id} is not part of the current patch")

    return ValidationReport(valid=not issues, issues=issues)


def validate_patch_against_rack(patch: Patch, rack: RackInventory) -> ValidationReport:
    """Every connection endpoint of a whole patch must exist in the rack."""
    issues: List[str] = []
    seen_ids = set()
    for conn in patch.connections:
        if conn.id in seen_ids:
            issues.append(f"Duplicate connection id {conn.id}")
        seen_ids.add(conn.id)
        if not rack.has_module(conn.from_.module_id):
            issues.append(f"Source module {conn.from_.module_name} ({conn.from_.module_id}) not found in rack")
        if not rack.has_module(conn.to.module_id):
            issues.append(f"Target module {conn.to.module_name} ({conn.to.module_id}) not found in rack")
    return ValidationReport(valid=not issues, issues=issues)
