# FILE: patchpath/sessions/models.py
"""
Chat session state.

A Session ties together the conversation, the rack inventory, the current
patch, a bounded stack of previous patches (for undo) and the list of
modifications applied so far.

Lifecycle:
1. Created on the first user turn (current_patch is None)
2. Generator output adopted -> current_patch set
3. Every committed refinement pushes the previous patch onto patch_history
4. Expires when the store TTL elapses, or is deleted explicitly

Serialization keeps timestamps as ISO-8601 with microseconds and keeps
message order exactly as appended.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from patchpath.patches import Patch, PatchModification, RackInventory

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """`<epoch-ms>-<9 base36 chars>`, e.g. 1729339200000-k3j9x0q2a."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One conversation turn. Immutable once appended."""
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=_now)
    image_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.image_ref:
            data["image_ref"] = self.image_ref
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            role=MessageRole(data["role"]),
            content=data["content"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            image_ref=data.get("image_ref"),
        )


@dataclass
class Session:
    """Conversational context for one user (or anonymous demo visitor)."""
    session_id: str
    owner: Optional[str] = None  # None = anonymous
    created_at: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)
    ttl_seconds: int = 86400

    messages: List[Message] = field(default_factory=list)
    rack_snapshot: Optional[RackInventory] = None
    rack_image_ref: Optional[str] = None

    current_patch: Optional[Patch] = None
    patch_history: List[Patch] = field(default_factory=list)  # oldest first
    applied_modifications: List[PatchModification] = field(default_factory=list)

    demo_mode: bool = False

    # Optimistic concurrency token, bumped on every write
    version: int = 0

    @property
    def has_patch(self) -> bool:
        return self.current_patch is not None

    @property
    def has_rack(self) -> bool:
        return self.rack_snapshot is not None

    def recent_messages(self, count: int = 3) -> List[Message]:
        return self.messages[-count:] if count > 0 else []

    def merged(self, changes: Dict[str, Any]) -> "Session":
        """Return a copy with `changes` applied (shallow, field-level merge)."""
        allowed = {f.name for f in fields(self)}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage."""
        return {
            "session_id": self.session_id,
            "owner": self.owner,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "ttl_seconds": self.ttl_seconds,
            "messages": [m.to_dict() for m in self.messages],
            "rack_snapshot": self.rack_snapshot.model_dump(mode="json") if self.rack_snapshot else None,
            "rack_image_ref": self.rack_image_ref,
            "current_patch": self.current_patch.to_json_dict() if self.current_patch else None,
            "patch_history": [p.to_json_dict() for p in self.patch_history],
            "applied_modifications": [
                m.model_dump(mode="json", by_alias=True) for m in self.applied_modifications
            ],
            "demo_mode": self.demo_mode,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Deserialize from dict. Raises on malformed input."""
        rack = data.get("rack_snapshot")
        current = data.get("current_patch")
        return cls(
            session_id=data["session_id"],
            owner=data.get("owner"),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_activity=datetime.fromisoformat(data["last_activity"]),
            ttl_seconds=int(data.get("ttl_seconds", 86400)),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            rack_snapshot=RackInventory.model_validate(rack) if rack else None,
            rack_image_ref=data.get("rack_image_ref"),
            current_patch=Patch.model_validate(current) if current else None,
            patch_history=[Patch.model_validate(p) for p in data.get("patch_history", [])],
            applied_modifications=[
                PatchModification.model_validate(m) for m in data.get("applied_modifications", [])
            ],
            demo_mode=bool(data.get("demo_mode", False)),
            version=int(data.get("version", 0)),
        )
