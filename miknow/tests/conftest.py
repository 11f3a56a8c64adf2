"""
Pytest configuration and fixtures for MiKnow tests.
"""

import json
from typing import Any, List, Optional

import httpx
import pytest

from miknow import settings
from miknow.settings import Credentials
from miknow.storage import API_KEY, MemoryStorage
from miknow.workspace import Workspace


def pytest_configure(config):
    """Configure pytest for async tests."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


def chat_body(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class FakeProvider:
    """Scripted stand-in for the Mistral API, served through httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.models_status = 200
        self.chat_status = 200
        self.chat_body: Any = chat_body("Hello from Mistral")
        self.error: Optional[Exception] = None

    def reply(self, content: str):
        self.chat_status = 200
        self.chat_body = chat_body(content)

    def fail(self, status: int, body: Any = None):
        self.chat_status = status
        self.chat_body = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        if request.url.path.endswith("/models"):
            return httpx.Response(self.models_status, json={"object": "list", "data": []})

        if self.chat_body is None:
            return httpx.Response(self.chat_status)
        if isinstance(self.chat_body, str):
            return httpx.Response(self.chat_status, text=self.chat_body)
        return httpx.Response(self.chat_status, json=self.chat_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def chat_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/chat/completions")]

    def last_payload(self) -> dict:
        return json.loads(self.chat_requests[-1].content)


@pytest.fixture(autouse=True)
def no_env_api_key(monkeypatch):
    """Keep a developer's MISTRAL_API_KEY out of the tests."""
    monkeypatch.setattr(settings, "MISTRAL_API_KEY", None)


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def credentials(store):
    store.set(API_KEY, "test-key-1234567890")
    return Credentials(store)


@pytest.fixture
def workspace(store, credentials, provider):
    return Workspace(store, transport=provider.transport)


@pytest.fixture
def client(workspace):
    return workspace.client()
