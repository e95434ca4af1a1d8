# FILE: tests/test_special_intents.py
"""
Tests for conversation-level intent detection and patch naming.
"""
import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from patchpath.patches import PatchModification
from patchpath.refinement import (
    detect_save_intent,
    detect_start_fresh_intent,
    detect_undo_intent,
    detect_variations_intent,
    generate_patch_name,
    generate_save_confirmation,
)


def _mods(*descriptions):
    return [PatchModification(description=d) for d in descriptions]


class TestSaveIntent:
    """Confidence tiers: direct > praise > other > bare approval."""

    def test_direct_save(self):
        result = detect_save_intent("save this")
        assert result.detected
        assert result.confidence == 1.0

    def test_praise_with_punctuation(self):
        result = detect_save_intent("Perfect!")
        assert result.detected
        assert result.confidence == 1.0

    def test_praise_mid_sentence(self):
        result = detect_save_intent("I love it, thanks")
        assert result.detected
        assert result.confidence == 0.85

    def test_bare_approval_is_weak(self):
        result = detect_save_intent("ok")
        assert result.detected
        assert result.confidence == 0.7

    def test_blocker_wins(self):
        result = detect_save_intent("not yet, save it later")
        assert not result.detected
        assert result.confidence == 0.9
        assert '"not yet"' in result.reasoning

    def test_blockers_respect_word_boundaries(self):
        # "no" inside "know"
        result = detect_save_intent("I know, that's perfect")
        assert result.detected

    def test_ok_inside_word_is_not_approval(self):
        assert not detect_save_intent("the token looks odd").detected

    def test_short_positive_fallback(self):
        result = detect_save_intent("good")
        assert result.detected
        assert result.confidence == 0.7

    def test_unrelated(self):
        result = detect_save_intent("make the filter darker")
        assert not result.detected
        assert result.confidence == 0.0

    def test_curly_apostrophe(self):
        assert detect_save_intent("that’s it").detected


class TestCommandIntents:
    @pytest.mark.parametrize("text", ["undo", "Go back please", "revert that", "put it back"])
    def test_undo(self, text):
        assert detect_undo_intent(text)

    def test_undo_word_boundary(self):
        assert not detect_undo_intent("the sound was undone by the filter")

    @pytest.mark.parametrize("text", ["start fresh", "Start over!", "from scratch please", "reset"])
    def test_start_fresh(self, text):
        assert detect_start_fresh_intent(text)

    @pytest.mark.parametrize("text", ["show me variations", "what else could work", "any alternatives?"])
    def test_variations(self, text):
        assert detect_variations_intent(text)

    def test_plain_feedback_is_none_of_them(self):
        text = "more reverb"
        assert not detect_undo_intent(text)
        assert not detect_start_fresh_intent(text)
        assert not detect_variations_intent(text)


class TestPatchNaming:
    def test_descriptors_from_modifications(self):
        name = generate_patch_name(
            "Deep Drone",
            _mods("Lowered filter cutoff for a darker sound", "Increased reverb send to 80%"),
        )
        assert name == "Deep Drone (Darker, Reverb Heavy)"

    def test_at_most_three_descriptors(self):
        name = generate_patch_name(
            "Pad",
            _mods("darker", "more reverb", "added delay", "louder"),
        )
        assert name == "Pad (Darker, Reverb Heavy, Delayed)"

    def test_mood_words_when_no_descriptors(self):
        name = generate_patch_name(
            "Pad",
            _mods("Adjusted general parameters"),
            conversation=["something ambient", "a bit more harsh", "and weird"],
        )
        assert name == "Pad (Ambient, Aggressive)"

    def test_unchanged_without_words(self):
        assert generate_patch_name("Pad", []) == "Pad"

    def test_truncated(self):
        name = generate_patch_name("X" * 90, _mods("darker"))
        assert len(name) == 80
        assert name.endswith("...")


class TestSaveConfirmation:
    def test_lists_first_three(self):
        text = generate_save_confirmation("Pad (Darker)", _mods("a", "b", "c", "d", "e"))
        lines = text.split("\n")
        assert lines[0] == '✅ Saved as "Pad (Darker)" to your Cookbook!'
        assert "This patch includes 5 refinements:" in lines
        assert "• a" in lines and "• c" in lines
        assert "• d" not in lines
        assert "• ...and 2 more" in lines
        assert lines[-1] == "Want to try another variation or start fresh?"

    def test_single_refinement_wording(self):
        text = generate_save_confirmation("Pad", _mods("a"))
        assert "This patch includes 1 refinement:" in text

    def test_no_refinements(self):
        text = generate_save_confirmation("Pad", [])
        assert "This patch includes" not in text
