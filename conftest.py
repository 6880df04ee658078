"""Global pytest configuration / lightweight fixtures for the code-base tests.

The chat backend is never contacted: outbound calls go through an
`httpx.MockTransport` whose handler each test controls.
"""

import json

import httpx
import pytest

from services.chat_client import ChatClient, ChatSession

BACKEND_URL = "http://backend.test/api/chat"


class FakeBackend:
    """Records requests and answers with a configurable response."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.payload = {"result": "**hi**"}
        self.raw_body = None
        self.error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.payload)

    def sent_bodies(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def fake_backend():
    """A scriptable stand-in for the chat backend."""
    return FakeBackend()


@pytest.fixture
def chat_client(fake_backend):
    return ChatClient(
        endpoint=BACKEND_URL,
        timeout=5.0,
        transport=httpx.MockTransport(fake_backend.handler),
    )


@pytest.fixture
def chat_session(chat_client):
    return ChatSession(chat_client)
