# tests/conftest.py
#
# Root conftest providing shared fixtures for all test modules.

import pytest

from playground_api.config import ChatMessage, ChatRequest, LanguageRequest


# ---------------------------------------------------------------------------
# Marker registration (supplements pyproject.toml markers)
# ---------------------------------------------------------------------------

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "contract: HTTP contract tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ---------------------------------------------------------------------------
# Request / message fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_messages():
    """List of ChatMessage objects covering every role."""
    return [
        ChatMessage(role="system", content="Answer briefly."),
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello!"),
        ChatMessage(role="user", content="What is 1+1?"),
    ]


@pytest.fixture
def sample_chat_request() -> ChatRequest:
    """Basic single-turn ChatRequest."""
    return ChatRequest(
        model="phi",
        messages=[
            ChatMessage(role="user", content="Hello, how are you?"),
        ],
        max_tokens=128,
    )


@pytest.fixture
def sample_language_request() -> LanguageRequest:
    return LanguageRequest(
        model="phi",
        prompt="The quick brown fox jumps over the lazy dog.",
        task="summarization",
    )
