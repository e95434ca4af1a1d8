# FILE: patchpath/providers/__init__.py
from .registry import (
    PROVIDERS,
    LlmCallResult,
    LlmCallStatus,
    LlmUsage,
    ProviderConfig,
    ProviderRegistry,
    get_provider_registry,
    is_provider_available,
    llm_call,
)

__all__ = [
    "LlmCallStatus",
    "LlmUsage",
    "LlmCallResult",
    "ProviderConfig",
    "PROVIDERS",
    "ProviderRegistry",
    "get_provider_registry",
    "llm_call",
    "is_provider_available",
]
