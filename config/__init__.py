# FILE: config/__init__.py
"""Configuration package for PatchPath.

Contains:
- settings.py: environment-driven runtime settings
- categories.py: category vocabulary used for feedback -> module matching
"""

from config.categories import (
    CATEGORY_VOCABULARY,
    AMPLIFIER_CATEGORY,
    CategorySpec,
    ParameterDelta,
    resolve_categories,
    get_category,
    implied_direction,
    feasibility_categories,
    target_tokens,
)
from config.settings import (
    RefinementSettings,
    get_settings,
    reset_settings,
)

__all__ = [
    "CATEGORY_VOCABULARY",
    "AMPLIFIER_CATEGORY",
    "CategorySpec",
    "ParameterDelta",
    "resolve_categories",
    "get_category",
    "implied_direction",
    "feasibility_categories",
    "target_tokens",
    "RefinementSettings",
    "get_settings",
    "reset_settings",
]
