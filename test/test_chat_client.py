"""
test_chat_client.py
-------------------
Tests for the outbound chat client and the widget session:
- request body shape sent to the backend
- error mapping (status, transport, malformed JSON, empty result)
- transcript updates and the single-request-in-flight rule
- per-client sessions in the registry
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from services.chat_client import (
    FAILURE_TEXT,
    NO_RESPONSE_TEXT,
    THINKING_TEXT,
    ChatBackendError,
    ChatClient,
    ChatSession,
    ChatSessionRegistry,
    EmptyReplyError,
    RequestInFlightError,
)


# -------------------------------------------------------------
# ChatClient
# -------------------------------------------------------------

@pytest.mark.asyncio
async def test_send_posts_single_user_message(chat_client, fake_backend):
    result = await chat_client.send("Hello there")

    assert result == "**hi**"
    assert len(fake_backend.requests) == 1
    request = fake_backend.requests[0]
    assert request.method == "POST"
    assert str(request.url) == chat_client.endpoint
    assert request.headers["content-type"] == "application/json"
    assert fake_backend.sent_bodies() == [
        {"messages": [{"role": "user", "content": "Hello there"}]}
    ]


@pytest.mark.asyncio
async def test_send_ignores_extra_reply_fields(chat_client, fake_backend):
    fake_backend.payload = {"result": "ok", "usage": {"tokens": 3}}
    assert await chat_client.send("x") == "ok"


@pytest.mark.asyncio
async def test_send_non_2xx_raises_backend_error(chat_client, fake_backend):
    fake_backend.status_code = 503
    fake_backend.payload = {"detail": "down"}

    with pytest.raises(ChatBackendError) as exc_info:
        await chat_client.send("x")

    assert "503" in str(exc_info.value)
    assert not isinstance(exc_info.value, EmptyReplyError)


@pytest.mark.asyncio
async def test_send_transport_error_raises_backend_error(chat_client, fake_backend):
    fake_backend.error = httpx.ConnectError("connection refused")

    with pytest.raises(ChatBackendError) as exc_info:
        await chat_client.send("x")

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_send_malformed_json_raises_backend_error(chat_client, fake_backend):
    fake_backend.raw_body = b"<html>not json</html>"

    with pytest.raises(ChatBackendError):
        await chat_client.send("x")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"result": ""}, {"result": None}, ["result"]])
async def test_send_without_result_raises_empty_reply(chat_client, fake_backend, payload):
    fake_backend.payload = payload

    with pytest.raises(EmptyReplyError):
        await chat_client.send("x")


@pytest.mark.asyncio
async def test_send_non_string_result_raises_backend_error(chat_client, fake_backend):
    fake_backend.payload = {"result": {"nested": True}}

    with pytest.raises(ChatBackendError):
        await chat_client.send("x")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "result, expected",
    [(42, "42"), (3.5, "3.5"), (2.0, "2"), (True, "true")],
)
async def test_send_scalar_result_is_returned_as_text(
    chat_client, fake_backend, result, expected
):
    fake_backend.payload = {"result": result}
    assert await chat_client.send("x") == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [0, 0.0, False])
async def test_send_falsy_scalar_result_raises_empty_reply(chat_client, fake_backend, result):
    fake_backend.payload = {"result": result}

    with pytest.raises(EmptyReplyError):
        await chat_client.send("x")


# -------------------------------------------------------------
# ChatSession
# -------------------------------------------------------------

@pytest.mark.asyncio
async def test_submit_renders_reply_html(chat_session, fake_backend):
    fake_backend.payload = {"result": "# Hi\n- <b>one</b>"}

    reply = await chat_session.submit("  question  ")

    assert reply.ok is True
    assert reply.html == "<h1>Hi</h1><ul><li>&lt;b&gt;one&lt;/b&gt;</li></ul>"
    assert fake_backend.sent_bodies()[0]["messages"][0]["content"] == "question"
    assert [m.sender for m in chat_session.transcript] == ["user", "bot"]
    assert chat_session.transcript[0].text == "question"
    assert chat_session.transcript[0].html == "question"
    assert chat_session.transcript[1] == reply
    assert chat_session.busy is False


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
async def test_submit_blank_message_is_ignored(chat_session, fake_backend, text):
    assert await chat_session.submit(text) is None
    assert fake_backend.requests == []
    assert list(chat_session.transcript) == []


@pytest.mark.asyncio
async def test_submit_empty_reply_shows_no_response_text(chat_session, fake_backend):
    fake_backend.payload = {"result": ""}

    reply = await chat_session.submit("hi")

    assert reply.ok is False
    assert reply.text == NO_RESPONSE_TEXT
    assert reply.html is None
    assert chat_session.transcript[-1].text == NO_RESPONSE_TEXT


@pytest.mark.asyncio
async def test_submit_backend_failure_shows_error_text(chat_session, fake_backend):
    fake_backend.status_code = 500

    reply = await chat_session.submit("hi")

    assert reply.ok is False
    assert reply.text == FAILURE_TEXT
    assert chat_session.busy is False


@pytest.mark.asyncio
async def test_submit_rejects_second_request_while_pending():
    release = asyncio.Event()
    started = asyncio.Event()

    async def slow_send(text):
        started.set()
        await release.wait()
        return "done"

    client = MagicMock(spec=ChatClient)
    client.send = AsyncMock(side_effect=slow_send)
    session = ChatSession(client)

    first = asyncio.create_task(session.submit("one"))
    await started.wait()

    assert session.busy is True
    assert session.transcript[-1].text == THINKING_TEXT
    with pytest.raises(RequestInFlightError):
        await session.submit("two")

    release.set()
    reply = await first

    assert reply.html == "<p>done</p>"
    assert client.send.await_count == 1
    assert session.busy is False
    assert await session.submit("three") is not None


@pytest.mark.asyncio
async def test_submit_escapes_user_entry_html(chat_session):
    await chat_session.submit("<b>hi</b> & 'you'")

    user_entry = chat_session.transcript[0]
    assert user_entry.text == "<b>hi</b> & 'you'"
    assert user_entry.html == "&lt;b&gt;hi&lt;/b&gt; &amp; &#039;you&#039;"


@pytest.mark.asyncio
async def test_submit_numeric_reply_is_rendered(chat_session, fake_backend):
    fake_backend.payload = {"result": 42}

    reply = await chat_session.submit("answer?")

    assert reply.ok is True
    assert reply.text == "42"
    assert reply.html == "<p>42</p>"


@pytest.mark.asyncio
async def test_transcript_keeps_most_recent_entries(chat_client):
    session = ChatSession(chat_client, transcript_limit=4)

    for text in ["one", "two", "three"]:
        await session.submit(text)

    assert len(session.transcript) == 4
    assert [m.text for m in session.transcript] == ["two", "**hi**", "three", "**hi**"]


# -------------------------------------------------------------
# ChatSessionRegistry
# -------------------------------------------------------------

def test_registry_returns_one_session_per_id(chat_client):
    registry = ChatSessionRegistry(chat_client)

    first = registry.get("a")

    assert registry.get("a") is first
    assert registry.get("b") is not first
    assert first.client is chat_client
    assert len(registry) == 2


def test_registry_evicts_least_recently_used(chat_client):
    registry = ChatSessionRegistry(chat_client, max_sessions=2)
    a = registry.get("a")
    registry.get("b")
    registry.get("a")
    registry.get("c")

    assert len(registry) == 2
    assert "b" not in registry
    assert "a" in registry and "c" in registry
    assert registry.get("a") is a


def test_registry_passes_transcript_limit(chat_client):
    registry = ChatSessionRegistry(chat_client, transcript_limit=6)
    assert registry.get("a").transcript.maxlen == 6


@pytest.mark.asyncio
async def test_pending_session_does_not_block_other_sessions():
    release = asyncio.Event()
    started = asyncio.Event()

    async def send(text):
        if text == "slow":
            started.set()
            await release.wait()
        return f"re: {text}"

    client = MagicMock(spec=ChatClient)
    client.send = AsyncMock(side_effect=send)
    registry = ChatSessionRegistry(client)

    slow = asyncio.create_task(registry.get("a").submit("slow"))
    await started.wait()

    assert registry.get("a").busy is True
    reply = await registry.get("b").submit("fast")
    assert reply.text == "re: fast"
    assert registry.get("b").busy is False

    with pytest.raises(RequestInFlightError):
        await registry.get("a").submit("again")

    release.set()
    assert (await slow).text == "re: slow"
    assert [m.text for m in registry.get("b").transcript] == ["fast", "re: fast"]
