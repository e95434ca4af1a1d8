# FILE: patchpath/providers/registry.py
"""
Provider Registry

- Single async entrypoint: llm_call(...)
- Plain completions only: no tools, no browsing, no streaming.
- A failed call never raises: the caller always gets an LlmCallResult and
  decides what its fallback is.

Supported (if keys + SDKs installed):
- Anthropic (AsyncAnthropic)
- OpenAI (AsyncOpenAI)

NOTE (OpenAI token param drift):
- Some newer OpenAI chat models (gpt-5.*, o-series) reject `max_tokens`
  and require `max_completion_tokens`. Routed by model family below.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class LlmCallStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    INVALID_REQUEST = "invalid_request"


@dataclass
class LlmUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LlmCallResult:
    status: LlmCallStatus
    provider_id: str
    model_id: str
    content: str = ""
    usage: LlmUsage = field(default_factory=LlmUsage)
    error_message: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == LlmCallStatus.SUCCESS


@dataclass
class ProviderConfig:
    provider_id: str
    display_name: str
    env_key_name: str


PROVIDERS: Dict[str, ProviderConfig] = {
    "anthropic": ProviderConfig("anthropic", "Anthropic", "ANTHROPIC_API_KEY"),
    "openai": ProviderConfig("openai", "OpenAI", "OPENAI_API_KEY"),
}


def _normalize_messages_for_openai(messages: List[dict], system_prompt: Optional[str]) -> List[dict]:
    out: List[dict] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    for m in messages:
        role = m.get("role")
        if role not in ("system", "user", "assistant"):
            role = "user"
        out.append({"role": role, "content": str(m.get("content", ""))})
    return out


def _normalize_messages_for_anthropic(messages: List[dict], system_prompt: Optional[str]) -> Tuple[str, List[dict]]:
    sys_parts: List[str] = []
    if system_prompt:
        sys_parts.append(system_prompt)

    user_assistant: List[dict] = []
    for m in messages:
        role = m.get("role")
        if role == "system":
            sys_parts.append(str(m.get("content", "")))
        elif role in ("user", "assistant"):
            user_assistant.append({"role": role, "content": str(m.get("content", ""))})

    return ("\n\n".join([p for p in sys_parts if p]).strip(), user_assistant)


def _openai_token_param_name(model_id: str) -> str:
    m = (model_id or "").strip().lower()
    if m.startswith("gpt-5") or m.startswith("o1") or m.startswith("o3") or m.startswith("o4"):
        return "max_completion_tokens"
    return "max_tokens"


def _supports_temperature(model_id: str) -> bool:
    """GPT-5.x and o-series only accept the default temperature."""
    m = (model_id or "").strip().lower()
    return not (m.startswith("gpt-5") or m.startswith("o1") or m.startswith("o3") or m.startswith("o4"))


class ProviderRegistry:
    def __init__(self, default_order: Tuple[str, ...] = ("anthropic", "openai")):
        self._default_order = default_order

    def is_provider_available(self, provider_id: str) -> bool:
        cfg = PROVIDERS.get(provider_id)
        if not cfg:
            return False
        if not os.getenv(cfg.env_key_name, "").strip():
            return False

        try:
            if provider_id == "openai":
                from openai import AsyncOpenAI  # noqa: F401
            elif provider_id == "anthropic":
                import anthropic  # noqa: F401
        except Exception:
            return False

        return True

    def pick_default_provider(self) -> Optional[str]:
        for pid in self._default_order:
            if self.is_provider_available(pid):
                return pid
        return None

    async def llm_call(
        self,
        provider_id: Optional[str],
        model_id: str,
        messages: List[dict],
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        timeout_seconds: float = 30,
    ) -> LlmCallResult:
        chosen = provider_id or self.pick_default_provider()
        if not chosen:
            return LlmCallResult(
                status=LlmCallStatus.PROVIDER_UNAVAILABLE,
                provider_id=str(provider_id or "none"),
                model_id=model_id,
                error_message="No providers available (missing API keys and/or SDKs).",
            )

        if chosen not in PROVIDERS:
            return LlmCallResult(
                status=LlmCallStatus.INVALID_REQUEST,
                provider_id=chosen,
                model_id=model_id,
                error_message=f"Unknown provider: {chosen}",
            )

        if not self.is_provider_available(chosen):
            return LlmCallResult(
                status=LlmCallStatus.PROVIDER_UNAVAILABLE,
                provider_id=chosen,
                model_id=model_id,
                error_message=f"Provider unavailable: {chosen}",
            )

        api_key = os.getenv(PROVIDERS[chosen].env_key_name)
        try:
            if chosen == "anthropic":
                return await self._call_anthropic(
                    api_key, model_id, messages, system_prompt, temperature, max_tokens, timeout_seconds
                )
            return await self._call_openai(
                api_key, model_id, messages, system_prompt, temperature, max_tokens, timeout_seconds
            )
        except Exception as exc:
            logger.exception("[registry] llm_call failed: %s", exc)
            return LlmCallResult(
                status=LlmCallStatus.ERROR,
                provider_id=chosen,
                model_id=model_id,
                error_message=str(exc),
            )

    async def _call_anthropic(
        self,
        api_key: str,
        model_id: str,
        messages: List[dict],
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> LlmCallResult:
        import anthropic

        client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout_seconds)
        final_system, user_assistant_messages = _normalize_messages_for_anthropic(messages, system_prompt)

        create_kwargs: Dict[str, Any] = dict(
            model=model_id,
            messages=user_assistant_messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if final_system:
            create_kwargs["system"] = final_system

        resp = await client.messages.create(**create_kwargs)

        text_parts = [getattr(b, "text", "") for b in (resp.content or []) if getattr(b, "type", None) == "text"]
        content = "\n".join([t for t in text_parts if t]).strip()

        usage = LlmUsage(
            prompt_tokens=getattr(resp.usage, "input_tokens", 0) if getattr(resp, "usage", None) else 0,
            completion_tokens=getattr(resp.usage, "output_tokens", 0) if getattr(resp, "usage", None) else 0,
        )
        usage.total_tokens = usage.prompt_tokens + usage.completion_tokens

        return LlmCallResult(
            status=LlmCallStatus.SUCCESS,
            provider_id="anthropic",
            model_id=model_id,
            content=content,
            usage=usage,
        )

    async def _call_openai(
        self,
        api_key: str,
        model_id: str,
        messages: List[dict],
        system_prompt: Optional[str],
        temperature: float,
        max_tokens: int,
        timeout_seconds: float,
    ) -> LlmCallResult:
        from openai import AsyncOpenAI

        client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds)

        create_kwargs: Dict[str, Any] = dict(
            model=model_id,
            messages=_normalize_messages_for_openai(messages, system_prompt),
            stream=False,
        )
        create_kwargs[_openai_token_param_name(model_id)] = int(max_tokens)
        if _supports_temperature(model_id):
            create_kwargs["temperature"] = float(temperature)

        resp = await client.chat.completions.create(**create_kwargs)

        content = resp.choices[0].message.content or ""
        usage = LlmUsage(
            prompt_tokens=getattr(resp.usage, "prompt_tokens", 0) if getattr(resp, "usage", None) else 0,
            completion_tokens=getattr(resp.usage, "completion_tokens", 0) if getattr(resp, "usage", None) else 0,
        )
        usage.total_tokens = usage.prompt_tokens + usage.completion_tokens

        return LlmCallResult(
            status=LlmCallStatus.SUCCESS,
            provider_id="openai",
            model_id=model_id,
            content=content.strip(),
            usage=usage,
        )


_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry


async def llm_call(
    provider_id: Optional[str],
    model_id: str,
    messages: List[dict],
    system_prompt: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: int = 1024,
    timeout_seconds: float = 30,
) -> LlmCallResult:
    return await get_provider_registry().llm_call(
        provider_id=provider_id,
        model_id=model_id,
        messages=messages,
        system_prompt=system_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout_seconds=timeout_seconds,
    )


def is_provider_available(provider_id: str) -> bool:
    return get_provider_registry().is_provider_available(provider_id)


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
