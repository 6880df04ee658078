"""
chat.py
-------
Widget routes: render markdown to safe HTML and relay chat messages to the
configured chat backend.
"""

import logging
from functools import lru_cache
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status

from config import settings
from schemas.chat_schemas import (
    RenderRequest,
    RenderResponse,
    WidgetMessageIn,
    WidgetReply,
)
from services.chat_client import (
    ChatClient,
    ChatSession,
    ChatSessionRegistry,
    RequestInFlightError,
)
from utils.message_render import markdown_to_html

logger = logging.getLogger(__name__)
router = APIRouter()

SESSION_HEADER = "X-Chat-Session"


@lru_cache(maxsize=1)
def get_session_registry() -> ChatSessionRegistry:
    """Process-wide registry of widget sessions bound to the configured backend."""
    client = ChatClient(
        endpoint=settings.CHAT_BACKEND_URL,
        timeout=settings.CHAT_REQUEST_TIMEOUT,
    )
    return ChatSessionRegistry(client)


def get_chat_session(
    response: Response,
    x_chat_session: Optional[str] = Header(None, max_length=64),
    registry: ChatSessionRegistry = Depends(get_session_registry),
) -> ChatSession:
    """
    Resolve the caller's session from the `X-Chat-Session` header.

    A new id is issued when the header is missing; it is echoed back so the
    widget can send it with its next message.
    """
    session_id = x_chat_session or uuid4().hex
    response.headers[SESSION_HEADER] = session_id
    return registry.get(session_id)


@router.post("/api/render", response_model=RenderResponse)
async def render_markdown(body: RenderRequest) -> RenderResponse:
    """Convert markdown to the sanitized HTML subset."""
    return RenderResponse(html=markdown_to_html(body.markdown))


@router.post("/api/widget/messages", response_model=WidgetReply)
async def post_widget_message(
    body: WidgetMessageIn,
    session: ChatSession = Depends(get_chat_session),
) -> WidgetReply:
    """
    Relay one user message to the chat backend and return the bot entry.

    Backend failures come back as `ok=false` with the inline error text.
    """
    try:
        reply = await session.submit(body.content)
    except RequestInFlightError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc

    if reply is None:
        raise HTTPException(
            status_code=422,
            detail="Message content is blank",
        )
    if not reply.ok:
        logger.warning("Widget reply degraded: %s", reply.text)
    return reply
