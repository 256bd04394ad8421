"""Pydantic models and dataclasses for request/response types."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, Field

class ImageGenerationIn(BaseModel):
    """Body of POST /v1/images/generations; presence checks happen in the route."""
    prompt: str | None = None
    n: int | None = Field(default=None, ge=1)
    response_format: str | None = None

class ChatMessage(BaseModel):
    role: str | None = None
    content: str | list[dict[str, Any]] | None = None

    def text(self) -> str:
        """Return the message text; content-part lists keep only their string text parts."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts = [
            part["text"]
            for part in self.content
            if part.get("type") == "text" and isinstance(part.get("text"), str)
        ]
        return "".join(parts)

class ChatCompletionIn(BaseModel):
    """Body of POST /v1/chat/completions."""
    messages: list[ChatMessage] | None = None
    model: str | None = None
    stream: bool = False

    def last_user_message(self) -> ChatMessage | None:
        for message in reversed(self.messages or []):
            if message.role == "user":
                return message
        return None

@dataclass(frozen=True)
class GenerationRequest:
    """One inbound generation call, after validation."""
    prompt: str
    count: int = 1
    response_format: str = "b64_json"

@dataclass(frozen=True)
class Fulfilled:
    """Upstream call that returned an image."""
    image_b64: str

@dataclass(frozen=True)
class Rejected:
    """Upstream call that failed; reason is human readable."""
    reason: str

UpstreamCallOutcome = Union[Fulfilled, Rejected]

# One outcome per requested attempt, in launch order.
BatchResult = list[UpstreamCallOutcome]
