"""
Test Configuration

Shared fixtures for the DocuChat test suite.
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from tests.fakes import FakeChatModel, FakeDocumentRepository, FakeEmbedder, FakeStorage, MemoryChunkStore


@pytest.fixture
def documents():
    return FakeDocumentRepository()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def chunk_store():
    return MemoryChunkStore()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def make_conversation():
    """Build a conversation-like object with the fields the resolver reads."""

    def _make(agent_id=None, context_id=None, rag_enabled=True):
        return SimpleNamespace(id=uuid4(), agent_id=agent_id, context_id=context_id, rag_enabled=rag_enabled)

    return _make
