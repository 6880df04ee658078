"""
Services package initialization.
This module exposes the chat client and widget session.
"""

__all__ = [
    "ChatClient",
    "ChatSession",
    "ChatSessionRegistry",
    "ChatBackendError",
    "EmptyReplyError",
    "RequestInFlightError",
]

from services.chat_client import (
    ChatClient,
    ChatSession,
    ChatSessionRegistry,
    ChatBackendError,
    EmptyReplyError,
    RequestInFlightError,
)
