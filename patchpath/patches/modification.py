# FILE: patchpath/patches/modification.py
"""
Structural diffs over a Patch.

A PatchModification is pure data: connections to add/remove and parameter
changes. Applying one is a deterministic function (see refinement.apply).
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .schemas import Connection


class ParameterChange(BaseModel):
    module_id: str
    module_name: str
    parameter: str
    old_value: str
    new_value: str
    reasoning: Optional[str] = None


class PatchModification(BaseModel):
    description: str
    connections_added: List[Connection] = Field(default_factory=list)
    connections_removed: List[Connection] = Field(default_factory=list)
    parameter_changes: List[ParameterChange] = Field(default_factory=list)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @property
    def is_empty(self) -> bool:
        return not (self.connections_added or self.connections_removed or self.parameter_changes)

    def change_count(self) -> int:
        return len(self.connections_added) + len(self.connections_removed) + len(self.parameter_changes)
