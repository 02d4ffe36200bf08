"""Shared fixtures: an in-memory store and engine components built on it."""

import pytest

from arrangement.clearing import OverlapClearer, set_duplicate_crash_workaround
from arrangement.config import EngineConfig
from arrangement.editor import ArrangementEditor
from arrangement.holding import HoldingArea
from arrangement.memory_store import InMemorySegmentStore
from arrangement.models import SegmentKind
from arrangement.trim import EdgeTrim


@pytest.fixture(autouse=True)
def restore_duplicate_workaround():
    """Tests that disable the crash workaround must not leak that state."""
    yield
    set_duplicate_crash_workaround(True)


@pytest.fixture
def store():
    store = InMemorySegmentStore()
    store.register_content("loop", SegmentKind.CONTENT_FIXED, length=4)
    store.register_content("audio", SegmentKind.CONTENT_FIXED, length=6)
    store.register_content("clip6", SegmentKind.RESIZABLE, length=6)
    return store


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def editor(store, config):
    return ArrangementEditor(store, config)


@pytest.fixture
def trim(store):
    return EdgeTrim(store)


@pytest.fixture
def clearer(store, trim):
    return OverlapClearer(store, HoldingArea(store), trim)
