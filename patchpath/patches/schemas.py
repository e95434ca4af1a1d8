# FILE: patchpath/patches/schemas.py
"""
Pydantic models for synthesizer patches.

A Patch is an ordered list of cable connections between rack modules plus
knob-position suggestions. Connection order is the suggested patching order.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def new_patch_id() -> str:
    return f"patch-{uuid.uuid4().hex[:12]}"


def new_connection_id(prefix: str = "conn") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


class SignalType(str, Enum):
    AUDIO = "audio"
    CV = "cv"
    GATE = "gate"
    CLOCK = "clock"
    VIDEO = "video"


class ConnectionImportance(str, Enum):
    """Visual hierarchy of a cable."""
    PRIMARY = "primary"
    MODULATION = "modulation"
    UTILITY = "utility"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class OutputEndpoint(BaseModel):
    module_id: str
    module_name: str
    output_name: str


class InputEndpoint(BaseModel):
    module_id: str
    module_name: str
    input_name: str


class Connection(BaseModel):
    """One patch cable. `id` is unique within a patch."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_connection_id)
    from_: OutputEndpoint = Field(alias="from")
    to: InputEndpoint
    signal_type: SignalType = SignalType.AUDIO
    importance: ConnectionImportance = ConnectionImportance.PRIMARY
    note: Optional[str] = None

    def touches(self, text: str) -> bool:
        """True if either endpoint's module name contains `text` (case-insensitive)."""
        needle = text.lower()
        return needle in self.from_.module_name.lower() or needle in self.to.module_name.lower()


class ParameterSuggestion(BaseModel):
    module_id: str
    module_name: str
    parameter: str
    value: str  # e.g. "12 o'clock", "fully clockwise", "3.5kHz"
    reasoning: Optional[str] = None


class PatchMetadata(BaseModel):
    title: str
    description: str = ""
    sound_description: Optional[str] = None
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    techniques: List[str] = Field(default_factory=list)
    genres: List[str] = Field(default_factory=list)
    user_intent: Optional[str] = None


class Patch(BaseModel):
    """A structured patch document, the thing conversations refine."""
    id: str = Field(default_factory=new_patch_id)
    rack_id: str
    metadata: PatchMetadata
    connections: List[Connection] = Field(default_factory=list)
    parameter_suggestions: List[ParameterSuggestion] = Field(default_factory=list)
    rationale: str = ""
    tips: List[str] = Field(default_factory=list)
    saved: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def module_ids(self) -> Set[str]:
        ids: Set[str] = set()
        for conn in self.connections:
            ids.add(conn.from_.module_id)
            ids.add(conn.to.module_id)
        return ids

    def find_suggestion(self, module_id: str, parameter: str) -> Optional[ParameterSuggestion]:
        for suggestion in self.parameter_suggestions:
            if suggestion.module_id == module_id and suggestion.parameter == parameter:
                return suggestion
        return None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
