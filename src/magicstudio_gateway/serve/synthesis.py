"""Render settled upstream outcomes into OpenAI-shaped payloads."""
from __future__ import annotations
import time
import uuid
from typing import Any

from magicstudio_gateway.common.errors import BatchExhaustedError
from magicstudio_gateway.common.schema import BatchResult, Fulfilled

def markdown_image(image_b64: str) -> str:
    return f"![](data:image/png;base64,{image_b64})"

def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"

def fulfilled_images(batch: BatchResult) -> list[str]:
    """
    Return the base64 payloads of the fulfilled outcomes, in batch order.

    Raises:
        BatchExhaustedError: if no outcome was fulfilled.
    """
    images = [o.image_b64 for o in batch if isinstance(o, Fulfilled) and o.image_b64]
    if not images:
        raise BatchExhaustedError()
    return images

def images_response(batch: BatchResult, response_format: str = "b64_json") -> dict[str, Any]:
    """Images API body keyed by ``response_format``; rejected outcomes are dropped, never padded."""
    images = fulfilled_images(batch)
    return {
        "created": int(time.time()),
        "data": [{response_format: b64} for b64 in images],
    }

def chat_completion(batch: BatchResult, model: str, completion_id: str | None = None) -> dict[str, Any]:
    """Single-shot chat completion wrapping the first fulfilled image as Markdown."""
    image_b64 = fulfilled_images(batch)[0]
    return {
        "id": completion_id or new_completion_id(),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": markdown_image(image_b64)},
                "finish_reason": "stop",
            }
        ],
        # The upstream has no notion of tokens.
        "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
    }

def chat_chunk(
    completion_id: str,
    model: str,
    content: str | None,
    finish_reason: str | None = None,
) -> dict[str, Any]:
    """One ``chat.completion.chunk``; ``content=None`` leaves the delta empty."""
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    return {
        "id": completion_id,
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
