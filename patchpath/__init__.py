# FILE: patchpath/__init__.py
"""PatchPath conversational patch refinement core."""
