"""
chat_client.py
--------------
Outbound chat calls and the per-user widget session.

`ChatClient` posts one user message to the chat backend and returns the
markdown reply. `ChatSession` keeps the visible transcript, shows a
"Thinking..." placeholder while the request runs, allows only one request in
flight, and swaps the placeholder for rendered HTML or an inline error.
"""

import logging
from collections import OrderedDict, deque
from typing import Deque, Optional

import httpx
from pydantic import ValidationError

from schemas.chat_schemas import ChatRequest, ChatResult, WidgetReply
from utils.message_render import escape_html, markdown_to_html

logger = logging.getLogger(__name__)

THINKING_TEXT = "Thinking..."
NO_RESPONSE_TEXT = "Sorry, no response received."
FAILURE_TEXT = "Failed to get response from server."

TRANSCRIPT_LIMIT = 200
MAX_SESSIONS = 1000


class ChatBackendError(Exception):
    """The chat backend could not be reached or returned an unusable reply."""


class EmptyReplyError(ChatBackendError):
    """The backend answered but carried no `result` text."""


class RequestInFlightError(Exception):
    """A submission arrived while the previous one is still pending."""


class ChatClient:
    def __init__(
        self,
        endpoint: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    async def send(self, text: str) -> str:
        """
        POST `text` as a single user message and return the markdown `result`.

        Raises:
            EmptyReplyError: the reply has no usable `result`.
            ChatBackendError: transport failure, non-2xx status or bad JSON.
        """
        payload = ChatRequest.from_user_text(text).model_dump()
        logger.info("[chat] sending message", extra={"chars": len(text)})

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.endpoint, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Chat backend error: %s %s",
                e.response.status_code,
                e.response.reason_phrase,
            )
            raise ChatBackendError(
                f"Server error: {e.response.status_code} {e.response.reason_phrase}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Error calling chat backend: {e}")
            raise ChatBackendError(f"Unable to reach chat backend: {e}") from e
        except ValueError as e:
            logger.error("Chat backend returned malformed JSON", exc_info=e)
            raise ChatBackendError("Malformed JSON in chat backend reply") from e

        if not isinstance(data, dict):
            raise EmptyReplyError("Chat backend reply is not a JSON object")
        try:
            reply = ChatResult.model_validate(data)
        except ValidationError as e:
            raise ChatBackendError(f"Unexpected chat backend reply: {e}") from e
        if not reply.result:
            raise EmptyReplyError("Chat backend reply has no result")
        return reply.result


class ChatSession:
    """One chat box: transcript plus the single-request-in-flight rule."""

    def __init__(self, client: ChatClient, transcript_limit: int = TRANSCRIPT_LIMIT):
        self.client = client
        # Oldest entries fall off once the limit is reached.
        self.transcript: Deque[WidgetReply] = deque(maxlen=transcript_limit)
        self._pending = False

    @property
    def busy(self) -> bool:
        return self._pending

    async def submit(self, text: str) -> Optional[WidgetReply]:
        """
        Send one user message and return the bot reply entry.

        Blank input is ignored (returns None, no request). The user entry
        keeps the raw text in `text` and its escaped form in `html`. Backend
        failures are turned into a visible error entry instead of being raised.
        """
        message = (text or "").strip()
        if not message:
            return None
        if self._pending:
            raise RequestInFlightError("A chat request is already pending")

        self._pending = True
        try:
            self.transcript.append(
                WidgetReply(sender="user", text=message, html=escape_html(message))
            )
            self.transcript.append(WidgetReply(sender="bot", text=THINKING_TEXT))
            try:
                markdown = await self.client.send(message)
            except EmptyReplyError:
                reply = WidgetReply(sender="bot", text=NO_RESPONSE_TEXT, ok=False)
            except ChatBackendError as e:
                logger.error("Failed to get response: %s", e)
                reply = WidgetReply(sender="bot", text=FAILURE_TEXT, ok=False)
            else:
                reply = WidgetReply(
                    sender="bot", text=markdown, html=markdown_to_html(markdown)
                )
            # Only this session appends while pending, so the placeholder is last.
            self.transcript[-1] = reply
            return reply
        finally:
            self._pending = False


class ChatSessionRegistry:
    """
    Chat sessions keyed by client session id, sharing one `ChatClient`.

    Least recently used sessions are dropped past `max_sessions`.
    """

    def __init__(
        self,
        client: ChatClient,
        max_sessions: int = MAX_SESSIONS,
        transcript_limit: int = TRANSCRIPT_LIMIT,
    ):
        self.client = client
        self.max_sessions = max_sessions
        self.transcript_limit = transcript_limit
        self._sessions: "OrderedDict[str, ChatSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = ChatSession(self.client, transcript_limit=self.transcript_limit)
            self._sessions[session_id] = session
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug("Evicted chat session %s", evicted)
        else:
            self._sessions.move_to_end(session_id)
        return session
