"""
Shared fixtures for the tutor chat test suite.
"""

import pytest

from core.chat.prompt_builder import PromptBuilder
from runtime.store.session_store import SessionStore

from fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """Session store with a 100 second TTL on a controllable clock."""
    return SessionStore(ttl_seconds=100, history_cap=20, clock=clock)


@pytest.fixture
def prompt_builder():
    return PromptBuilder(topic_keywords={})
