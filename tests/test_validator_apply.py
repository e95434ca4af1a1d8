# FILE: tests/test_validator_apply.py
"""
Tests for modification validation, application and the undo stack.
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from conftest import make_connection
from patchpath.patches import ConnectionImportance, ParameterChange, PatchModification
from patchpath.refinement import (
    PatchHistory,
    apply_modification,
    validate_modification,
    validate_patch_against_rack,
)


def _change(module_id="mod-filter", module_name="Maths Filter", parameter="cutoff", new_value="3.5kHz"):
    return ParameterChange(
        module_id=module_id,
        module_name=module_name,
        parameter=parameter,
        old_value="5kHz",
        new_value=new_value,
    )


def _add_delay():
    return PatchModification(
        description="Added delay to the patch",
        connections_added=[
            make_connection(
                "delay-0001", "mod-vca", "Quad VCA", "mod-delay", "Echophon",
                importance=ConnectionImportance.MODULATION,
            )
        ],
    )


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidateModification:
    def test_valid(self, base_patch, rack):
        mod = _add_delay()
        mod.parameter_changes.append(_change())
        report = validate_modification(mod, base_patch, rack)
        assert report.valid
        assert report.issues == []

    def test_unknown_endpoint(self, base_patch, bare_rack):
        report = validate_modification(_add_delay(), base_patch, bare_rack)
        assert not report.valid
        assert report.issues == ["Target module Echophon (mod-delay) not found in rack"]

    def test_unknown_parameter_module(self, base_patch, rack):
        mod = PatchModification(description="x", parameter_changes=[_change("mod-ghost", "Ghost")])
        report = validate_modification(mod, base_patch, rack)
        assert report.issues == ["Module Ghost (mod-ghost) not found in rack"]

    def test_removal_must_exist_in_patch(self, base_patch, rack):
        stray = make_connection("conn-99", "mod-osc", "Plaits", "mod-vca", "Quad VCA")
        mod = PatchModification(description="x", connections_removed=[stray])
        report = validate_modification(mod, base_patch, rack)
        assert report.issues == ["Connection conn-99 is not part of the current patch"]

    def test_empty_modification_is_valid(self, base_patch, rack):
        assert validate_modification(PatchModification(description="nothing"), base_patch, rack).valid


class TestValidatePatchAgainstRack:
    def test_whole_patch(self, base_patch, rack, bare_rack):
        assert validate_patch_against_rack(base_patch, rack).valid
        assert validate_patch_against_rack(base_patch, bare_rack).valid

    def test_duplicate_ids_and_missing_modules(self, base_patch, bare_rack):
        base_patch.connections.append(make_connection("conn-1", "mod-osc", "Plaits", "mod-delay", "Echophon"))
        report = validate_patch_against_rack(base_patch, bare_rack)
        assert not report.valid
        assert "Duplicate connection id conn-1" in report.issues
        assert "Target module Echophon (mod-delay) not found in rack" in report.issues


# =============================================================================
# APPLICATION
# =============================================================================


class TestApplyModification:
    def test_pure(self, base_patch):
        before = base_patch.model_copy(deep=True)
        mod = _add_delay()
        mod.parameter_changes.append(_change())
        mod_before = mod.model_copy(deep=True)

        apply_modification(base_patch, mod)

        assert base_patch == before
        assert mod == mod_before

    def test_adds_with_fresh_ids(self, base_patch):
        mod = _add_delay()
        once = apply_modification(base_patch, mod)
        twice = apply_modification(once, mod)

        ids = [c.id for c in twice.connections]
        assert len(ids) == 4
        assert len(set(ids)) == 4
        assert "delay-0001" not in ids
        assert all(i.startswith("delay-") for i in ids[2:])

    def test_removes_by_id(self, base_patch):
        mod = PatchModification(description="x", connections_removed=[base_patch.connections[0]])
        updated = apply_modification(base_patch, mod)
        assert [c.id for c in updated.connections] == ["conn-2"]

    def test_updates_existing_suggestion(self, base_patch):
        updated = apply_modification(base_patch, PatchModification(description="x", parameter_changes=[_change()]))
        assert len(updated.parameter_suggestions) == 1
        assert updated.parameter_suggestions[0].value == "3.5kHz"

    def test_inserts_new_suggestion(self, base_patch):
        change = _change("mod-vca", "Quad VCA", "level", "3 o'clock")
        updated = apply_modification(base_patch, PatchModification(description="x", parameter_changes=[change]))
        assert [(s.module_id, s.parameter) for s in updated.parameter_suggestions] == [
            ("mod-filter", "cutoff"),
            ("mod-vca", "level"),
        ]

    def test_keeps_identity_and_marks_unsaved(self, base_patch):
        saved = base_patch.model_copy(update={"saved": True})
        updated = apply_modification(saved, _add_delay())
        assert updated.id == base_patch.id
        assert updated.saved is False
        assert updated.updated_at >= saved.updated_at


# =============================================================================
# HISTORY
# =============================================================================


class TestPatchHistory:
    def _patches(self, base_patch, n):
        return [base_patch.model_copy(update={"id": f"p{i}"}) for i in range(n)]

    def test_push_and_undo(self, base_patch):
        p0, p1, p2 = self._patches(base_patch, 3)
        history = PatchHistory(current=p0)
        history.push(p1)
        history.push(p2)

        assert len(history) == 3
        assert history.undo().id == "p1"
        assert history.undo().id == "p0"
        assert not history.can_undo()
        assert history.undo() is None
        assert history.current.id == "p0"

    def test_bounded(self, base_patch):
        patches = self._patches(base_patch, 8)
        history = PatchHistory(current=patches[0], capacity=5)
        evicted = [history.push(p) for p in patches[1:]]

        assert [s.id for s in history.snapshots] == ["p2", "p3", "p4", "p5", "p6"]
        assert history.current.id == "p7"
        assert [e.id for e in evicted if e is not None] == ["p0", "p1"]

    def test_first_push_has_nothing_to_undo(self, base_patch):
        history = PatchHistory()
        history.push(base_patch)
        assert history.current is base_patch
        assert history.snapshots == []
        assert not history.can_undo()

    def test_clear(self, base_patch):
        p0, p1 = self._patches(base_patch, 2)
        history = PatchHistory([p0], current=p1)
        history.clear()
        assert len(history) == 0
        assert history.current is None

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            PatchHistory(capacity=0)
