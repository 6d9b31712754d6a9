"""Pytest configuration shared by unit and integration tests."""

import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from chatgate.services.embeddings import EmbeddingIndex  # noqa: E402
from chatgate.services.history import BoundedHistory  # noqa: E402
from chatgate.services.memory import ConversationMemory  # noqa: E402
from chatgate.services.profile import ProfileSynthesizer  # noqa: E402
from chatgate.services.store import UserStore  # noqa: E402
from tests.fixtures import FakeBackend  # noqa: E402


@pytest.fixture
def store():
    return UserStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def history(store):
    return BoundedHistory(store)


@pytest.fixture
def embeddings(store, backend):
    return EmbeddingIndex(store, backend.embed)


@pytest.fixture
def profiles(store, history, backend):
    return ProfileSynthesizer(store, history, backend.generate)


@pytest.fixture
def memory(store, history, embeddings, profiles):
    return ConversationMemory(store, history, embeddings, profiles)
