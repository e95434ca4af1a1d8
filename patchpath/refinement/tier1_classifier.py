# FILE: patchpath/refinement/tier1_classifier.py
"""
Tier 1: Oracle classifier (small, fast model).
Used only when Tier 0 rules don't match.

The oracle's answer is untrusted free text. It is reduced to a JSON object
(```json fence first, then the outermost {...} span) and validated against
OracleFeedbackPayload. Anything that fails on the way (provider error,
timeout, no JSON, bad JSON, unknown intent/specificity) becomes the fixed
fallback ParsedFeedback. Nothing raises out of classify().
"""
from __future__ import annotations
import asyncio
import json
import logging
import re
from typing import Optional, List, Dict, Any

from pydantic import ValidationError

from config.settings import RefinementSettings, get_settings
from patchpath.patches import Patch, RackInventory

from .schemas import (
    OracleFeedbackPayload,
    ParsedFeedback,
    fallback_feedback,
)

logger = logging.getLogger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_CLASSIFIER_TOKENS = 500

_JSON_FENCE = re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL)
_JSON_SPAN = re.compile(r"\{.*\}", re.DOTALL)


class OracleResponseError(ValueError):
    """The oracle answered, but not with something we can use."""


# =============================================================================
# CLASSIFIER PROMPT
# =============================================================================

CLASSIFIER_SYSTEM_PROMPT = """You interpret feedback on modular synthesizer patches.
Decide what the user wants to change about the CURRENT patch.

CURRENT PATCH:
- Title: "{patch_title}"
- Description: "{patch_description}"
- Techniques: {techniques}
- Modules in the rack: {module_names}

SESSION CONTEXT:
{context_summary}

INTENTS:
- adjust: change a setting of something already patched ("darker", "more reverb", "louder")
- add: bring a module into the signal path ("add delay", "add distortion")
- remove: take something out ("remove the delay", "simplify")
- replace: swap one thing for another ("use the delay instead of the reverb")
- clarify: too vague to act on ("make it better", "fix it", "change something")

SPECIFICITY:
- vague: a direction without a number ("darker")
- specific: an explicit value ("set cutoff to 2kHz", "decay to 5 seconds")

Return ONLY a JSON object:
{{
  "intent": "adjust|add|remove|replace|clarify",
  "target": "what_to_change",
  "direction": "increase|decrease or null",
  "specificity": "vague|specific",
  "value": "the explicit value or null",
  "confidence": 0.0-1.0,
  "reasoning": "one short sentence"
}}

EXAMPLES:
- "darker" -> {{"intent": "adjust", "target": "filter_cutoff", "direction": "decrease", "specificity": "vague", "value": null, "confidence": 0.9, "reasoning": "Darker usually means a lower filter cutoff"}}
- "add delay" -> {{"intent": "add", "target": "delay", "direction": null, "specificity": "vague", "value": null, "confidence": 0.95, "reasoning": "Wants a delay in the signal path"}}
- "set reverb decay to 5 seconds" -> {{"intent": "adjust", "target": "reverb_decay", "direction": "increase", "specificity": "specific", "value": "5s", "confidence": 0.98, "reasoning": "Explicit decay time"}}
"""


def build_system_prompt(
    context_summary: str,
    patch: Optional[Patch] = None,
    rack: Optional[RackInventory] = None,
) -> str:
    return CLASSIFIER_SYSTEM_PROMPT.format(
        patch_title=patch.metadata.title if patch else "(none yet)",
        patch_description=patch.metadata.description if patch else "",
        techniques=", ".join(patch.metadata.techniques) if patch and patch.metadata.techniques else "none",
        module_names=", ".join(m.name for m in rack.modules) if rack and rack.modules else "unknown",
        context_summary=context_summary or "(no context)",
    )


def extract_json_object(text: str) -> Dict[str, Any]:
    """Pull the JSON object out of a free-text oracle answer."""
    if not text or not text.strip():
        raise OracleResponseError("Empty oracle response")
    match = _JSON_FENCE.search(text)
    candidate = match.group(1) if match else None
    if candidate is None:
        span = _JSON_SPAN.search(text)
        if not span:
            raise OracleResponseError("No JSON found in oracle response")
        candidate = span.group(0)
    data = json.loads(candidate)
    if not isinstance(data, dict):
        raise OracleResponseError(f"Oracle JSON is a {type(data).__name__}, not an object")
    return data


def parse_oracle_response(text: str) -> ParsedFeedback:
    """Strict boundary: raises OracleResponseError / JSONDecodeError / ValidationError."""
    payload = OracleFeedbackPayload.model_validate(extract_json_object(text))
    return payload.to_feedback()


# =============================================================================
# ORACLE CLIENT
# =============================================================================

class OracleClient:
    """
    Thin wrapper over providers.registry.llm_call for classification.

    Raises on anything but a successful call so the classifier has one
    place to convert failures into the fallback.
    """

    def __init__(self, settings: Optional[RefinementSettings] = None):
        self._settings = settings or get_settings()

    async def call_async(self, system_prompt: str, user_prompt: str) -> str:
        from patchpath.providers.registry import llm_call

        result = await llm_call(
            provider_id=self._settings.classifier_provider,
            model_id=self._settings.classifier_model,
            messages=[{"role": "user", "content": user_prompt}],
            system_prompt=system_prompt,
            temperature=0.0,
            max_tokens=MAX_CLASSIFIER_TOKENS,
            timeout_seconds=self._settings.classifier_timeout_seconds,
        )
        if not result.is_success():
            raise OracleResponseError(
                f"{result.provider_id}/{result.model_id} {result.status.value}: {result.error_message}"
            )
        return result.content


# =============================================================================
# CLASSIFIER
# =============================================================================

class Tier1Classifier:
    """
    Oracle-backed feedback classifier.

    Usage:
        classifier = Tier1Classifier(oracle_client)
        feedback = await classifier.classify(text, context_summary, patch, rack)
    """

    def __init__(self, llm_client=None, timeout_seconds: Optional[float] = None):
        """
        Args:
            llm_client: anything with `async call_async(system_prompt, user_prompt) -> str`.
                        If None, an OracleClient over the provider registry is used.
            timeout_seconds: hard ceiling on the oracle call (abandoned on expiry).
        """
        self._llm_client = llm_client
        self._timeout = timeout_seconds if timeout_seconds is not None else get_settings().classifier_timeout_seconds

    async def classify(
        self,
        text: str,
        context_summary: str = "",
        patch: Optional[Patch] = None,
        rack: Optional[RackInventory] = None,
    ) -> ParsedFeedback:
        system_prompt = build_system_prompt(context_summary, patch, rack)
        user_prompt = f'USER FEEDBACK: "{text}"\n\nParse this feedback into a structured refinement request.'

        try:
            response = await asyncio.wait_for(
                self._get_llm_client().call_async(system_prompt, user_prompt),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[tier1] Oracle timed out after {self._timeout}s, using fallback")
            return fallback_feedback(f"Oracle timed out after {self._timeout}s")
        except Exception as e:
            logger.warning(f"[tier1] Oracle call failed, using fallback: {e}")
            return fallback_feedback(f"Oracle call failed: {e}")

        try:
            feedback = parse_oracle_response(response)
        except (OracleResponseError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"[tier1] Invalid oracle output, using fallback: {e}")
            logger.debug(f"[tier1] Raw oracle output: {response[:500]!r}")
            return fallback_feedback(f"Invalid oracle output: {type(e).__name__}")

        logger.info(
            f"[tier1] intent={feedback.intent.value} target={feedback.target!r} "
            f"specificity={feedback.specificity.value} confidence={feedback.confidence}"
        )
        return feedback

    def _get_llm_client(self):
        if self._llm_client is None:
            self._llm_client = OracleClient()
        return self._llm_client


# =============================================================================
# STUB FOR TESTING
# =============================================================================

class MockTier1Classifier:
    """
    Mock classifier for testing without oracle calls.
    """

    def __init__(self, feedback: Optional[ParsedFeedback] = None):
        self.feedback = feedback or fallback_feedback("Mock classification")
        self.call_count = 0
        self.last_text: Optional[str] = None
        self.calls: List[str] = []

    async def classify(
        self,
        text: str,
        context_summary: str = "",
        patch: Optional[Patch] = None,
        rack: Optional[RackInventory] = None,
    ) -> ParsedFeedback:
        self.call_count += 1
        self.last_text = text
        self.calls.append(text)
        return self.feedback
