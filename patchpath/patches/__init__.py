# FILE: patchpath/patches/__init__.py
"""Patch and rack inventory models."""
from __future__ import annotations

from .schemas import (
    SignalType,
    ConnectionImportance,
    DifficultyLevel,
    OutputEndpoint,
    InputEndpoint,
    Connection,
    ParameterSuggestion,
    PatchMetadata,
    Patch,
    new_connection_id,
    new_patch_id,
    utcnow,
)
from .rack import RackModule, RackInventory
from .modification import ParameterChange, PatchModification

__all__ = [
    "SignalType",
    "ConnectionImportance",
    "DifficultyLevel",
    "OutputEndpoint",
    "InputEndpoint",
    "Connection",
    "ParameterSuggestion",
    "PatchMetadata",
    "Patch",
    "new_connection_id",
    "new_patch_id",
    "utcnow",
    "RackModule",
    "RackInventory",
    "ParameterChange",
    "PatchModification",
]
