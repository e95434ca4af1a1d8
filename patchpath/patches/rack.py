# FILE: patchpath/patches/rack.py
"""
Rack inventory as supplied by the external scraping/vision subsystem.

Read-only to the refinement core. Every module reference a modification
makes is checked against this inventory, never against a static catalog.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from config.categories import CategorySpec


class RackModule(BaseModel):
    id: str
    name: str
    manufacturer: str = ""
    type: str = "Other"

    def type_matches(self, keywords: Iterable[str]) -> bool:
        module_type = self.type.lower()
        return any(kw in module_type for kw in keywords)

    def matches(self, keywords: Iterable[str]) -> bool:
        """Case-insensitive substring match on declared type OR name."""
        keywords = list(keywords)
        name = self.name.lower()
        return self.type_matches(keywords) or any(kw in name for kw in keywords)


class RackInventory(BaseModel):
    modules: List[RackModule] = Field(default_factory=list)
    rack_id: Optional[str] = None
    name: Optional[str] = None

    def find(self, module_id: str) -> Optional[RackModule]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def has_module(self, module_id: str) -> bool:
        return self.find(module_id) is not None

    def modules_matching(self, keywords: Iterable[str]) -> List[RackModule]:
        keywords = list(keywords)
        return [m for m in self.modules if m.matches(keywords)]

    def modules_of_type(self, keywords: Iterable[str]) -> List[RackModule]:
        keywords = list(keywords)
        return [m for m in self.modules if m.type_matches(keywords)]

    def has_type(self, keywords: Iterable[str]) -> bool:
        return bool(self.modules_of_type(keywords))

    def capability_flags(self, vocabulary: Dict[str, CategorySpec]) -> Dict[str, bool]:
        """Per-category "does the rack have one of these?" flags."""
        return {
            name: bool(self.modules_matching(spec.module_keywords))
            for name, spec in vocabulary.items()
        }
