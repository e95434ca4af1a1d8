# FILE: tests/conftest.py
"""
Pytest configuration for the PatchPath test suite.

Configures:
- pytest-asyncio for async test support
- shared rack / patch / store fixtures
"""
import sys
from pathlib import Path

import pytest

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from config.settings import RefinementSettings
from patchpath.patches import (
    Connection,
    ConnectionImportance,
    InputEndpoint,
    OutputEndpoint,
    ParameterSuggestion,
    Patch,
    PatchMetadata,
    RackInventory,
    RackModule,
    SignalType,
)
from patchpath.refinement import (
    FeedbackIntent,
    MockTier1Classifier,
    ParsedFeedback,
    FeedbackClassifier,
    RefinementOrchestrator,
)
from patchpath.sessions import InMemoryBackend, SessionStore, SessionStoreUnavailable

pytest_plugins = ["pytest_asyncio"]


def _module(module_id, name, module_type, manufacturer=""):
    return RackModule(id=module_id, name=name, type=module_type, manufacturer=manufacturer)


@pytest.fixture
def rack():
    """A small but complete rack: osc, filter, VCA, delay, reverb."""
    return RackInventory(
        rack_id="rack-test",
        name="Test Rack",
        modules=[
            _module("mod-osc", "Plaits", "VCO", "Mutable Instruments"),
            _module("mod-filter", "Maths Filter", "filter", "Make Noise"),
            _module("mod-vca", "Quad VCA", "VCA", "Intellijel"),
            _module("mod-delay", "Echophon", "Delay", "Make Noise"),
            _module("mod-reverb", "Erbe-Verb", "Reverb", "Make Noise"),
        ],
    )


@pytest.fixture
def bare_rack():
    """No effects at all."""
    return RackInventory(
        rack_id="rack-bare",
        modules=[
            _module("mod-osc", "Plaits", "VCO"),
            _module("mod-filter", "Maths Filter", "filter"),
            _module("mod-vca", "Quad VCA", "VCA"),
        ],
    )


def make_connection(conn_id, src, src_name, dst, dst_name, importance=ConnectionImportance.PRIMARY):
    return Connection(
        id=conn_id,
        from_=OutputEndpoint(module_id=src, module_name=src_name, output_name="out"),
        to=InputEndpoint(module_id=dst, module_name=dst_name, input_name="in"),
        signal_type=SignalType.AUDIO,
        importance=importance,
    )


class FlakyBackend(InMemoryBackend):
    """In-memory backend that can be switched off like a Redis outage."""

    name = "redis"

    def __init__(self):
        super().__init__()
        self.down = False

    def _check(self):
        if self.down:
            raise SessionStoreUnavailable("connection refused")

    async def get(self, key):
        self._check()
        return await super().get(key)

    async def set_with_ttl(self, key, value, ttl_seconds):
        self._check()
        await super().set_with_ttl(key, value, ttl_seconds)

    async def compare_and_set(self, key, expected, value, ttl_seconds):
        self._check()
        return await super().compare_and_set(key, expected, value, ttl_seconds)

    async def delete(self, key):
        self._check()
        await super().delete(key)

    async def keys_matching(self, prefix):
        self._check()
        return await super().keys_matching(prefix)

    async def ttl(self, key):
        self._check()
        return await super().ttl(key)

    async def ping(self):
        self._check()


@pytest.fixture
def base_patch():
    return Patch(
        id="patch-base",
        rack_id="rack-test",
        metadata=PatchMetadata(title="Deep Drone", description="Slow evolving drone", techniques=["subtractive"]),
        connections=[
            make_connection("conn-1", "mod-osc", "Plaits", "mod-filter", "Maths Filter"),
            make_connection("conn-2", "mod-filter", "Maths Filter", "mod-vca", "Quad VCA"),
        ],
        parameter_suggestions=[
            ParameterSuggestion(module_id="mod-filter", module_name="Maths Filter", parameter="cutoff", value="5kHz"),
        ],
    )


@pytest.fixture
def settings():
    return RefinementSettings(commit_retries=2, history_capacity=5, clarify_threshold=0.5)


@pytest.fixture
def store():
    return SessionStore(InMemoryBackend(), ttl_seconds=3600)


def feedback(intent, target="general", confidence=0.9, **kwargs):
    return ParsedFeedback(intent=FeedbackIntent(intent), target=target, confidence=confidence, **kwargs)


@pytest.fixture
def make_feedback():
    return feedback


@pytest.fixture
def mock_tier1():
    return MockTier1Classifier()


@pytest.fixture
def orchestrator(store, settings, mock_tier1):
    return RefinementOrchestrator(
        store,
        classifier=FeedbackClassifier(tier1=mock_tier1),
        settings=settings,
    )


@pytest.fixture
def seed_session(store, rack, base_patch):
    """Returns an async factory: a session with rack + current patch attached."""

    async def _seed(with_patch=True, with_rack=True, rack_override=None):
        session = await store.create(owner="user-1")
        changes = {}
        if with_rack:
            changes["rack_snapshot"] = rack_override or rack
        if with_patch:
            changes["current_patch"] = base_patch
        if changes:
            session = await store.update(session.session_id, changes)
        return session

    return _seed
