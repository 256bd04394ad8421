"""Streaming chat completion as a small state machine.

    OPENING -> GENERATING -> CONTENT | FAILED -> STOPPED -> DONE

GENERATING is the only state that awaits (one upstream call). Every path,
including failures, ends with STOPPED and DONE so SSE clients always see
the ``[DONE]`` marker.
"""
from __future__ import annotations
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

from magicstudio_gateway.common.errors import BatchExhaustedError
from magicstudio_gateway.common.schema import BatchResult
from magicstudio_gateway.serve.synthesis import chat_chunk, fulfilled_images, markdown_image, new_completion_id

LOGGER = logging.getLogger("magicstudio.chat_stream")

DONE_FRAME = "data: [DONE]\n\n"

class Executor(Protocol):
    async def execute(self, prompt: str, count: int = 1) -> BatchResult: ...

class StreamState(enum.Enum):
    OPENING = "opening"
    GENERATING = "generating"
    CONTENT = "content"
    FAILED = "failed"
    STOPPED = "stopped"
    DONE = "done"

@dataclass(frozen=True)
class ChatStreamEvent:
    """An emitted event; ``payload`` is None only for DONE."""
    state: StreamState
    payload: dict[str, Any] | None = None

    def to_sse(self) -> str:
        if self.payload is None:
            return DONE_FRAME
        return f"data: {json.dumps(self.payload)}\n\n"

class ChatStream:
    """Drives one streamed chat turn for a single generated image."""

    def __init__(
        self,
        executor: Executor,
        prompt: str,
        model: str,
        completion_id: str | None = None,
    ) -> None:
        self.executor = executor
        self.prompt = prompt
        self.model = model
        self.completion_id = completion_id or new_completion_id()
        self.state = StreamState.OPENING

    def _chunk(self, content: str | None, finish_reason: str | None = None) -> dict[str, Any]:
        return chat_chunk(self.completion_id, self.model, content, finish_reason)

    async def events(self) -> AsyncIterator[ChatStreamEvent]:
        image_b64 = ""
        error_message = ""
        while True:
            state = self.state
            if state is StreamState.OPENING:
                yield ChatStreamEvent(state, self._chunk(""))
                self.state = StreamState.GENERATING
            elif state is StreamState.GENERATING:
                try:
                    batch = await self.executor.execute(self.prompt, 1)
                    image_b64 = fulfilled_images(batch)[0]
                    self.state = StreamState.CONTENT
                except BatchExhaustedError as e:
                    LOGGER.error("Streaming generation failed: %s", e.message)
                    error_message = e.message
                    self.state = StreamState.FAILED
                except Exception as e:
                    LOGGER.exception("Streaming generation raised")
                    error_message = str(e) or e.__class__.__name__
                    self.state = StreamState.FAILED
            elif state is StreamState.CONTENT:
                yield ChatStreamEvent(state, self._chunk(markdown_image(image_b64)))
                self.state = StreamState.STOPPED
            elif state is StreamState.FAILED:
                payload = {"error": {"message": error_message, "type": "server_error"}}
                yield ChatStreamEvent(state, payload)
                self.state = StreamState.STOPPED
            elif state is StreamState.STOPPED:
                yield ChatStreamEvent(state, self._chunk(None, "stop"))
                self.state = StreamState.DONE
            else:
                yield ChatStreamEvent(StreamState.DONE)
                return

    async def sse(self) -> AsyncIterator[str]:
        """Serialized SSE frames, one per event."""
        async for event in self.events():
            yield event.to_sse()
