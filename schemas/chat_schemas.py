"""schemas/chat_schemas.py
=========================
Wire models for the widget endpoints and the upstream chat backend.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"] = "user"
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Body POSTed to the chat backend."""

    messages: List[ChatMessage] = Field(..., min_length=1)

    @classmethod
    def from_user_text(cls, text: str) -> "ChatRequest":
        return cls(messages=[ChatMessage(role="user", content=text)])


class ChatResult(BaseModel):
    """Backend reply; only `result` (markdown text) is consumed."""

    model_config = ConfigDict(extra="ignore")

    result: Optional[str] = None

    @field_validator("result", mode="before")
    @classmethod
    def scalar_result_to_text(cls, value):
        # Numbers and booleans are shown as text; falsy ones count as no reply.
        if isinstance(value, bool):
            return "true" if value else None
        if isinstance(value, (int, float)):
            if not value:
                return None
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            return str(value)
        return value


class WidgetMessageIn(BaseModel):
    content: str = Field(
        ...,
        min_length=1,
        max_length=10000,
        description="Message content with 10k character limit"
    )


class WidgetReply(BaseModel):
    """One transcript entry as shown in the chat box."""

    sender: Literal["user", "bot"]
    text: str = Field(..., description="Plain-text rendering of the message")
    html: Optional[str] = Field(None, description="Rendered HTML for bot replies")
    ok: bool = True


class RenderRequest(BaseModel):
    markdown: str = ""


class RenderResponse(BaseModel):
    html: str
