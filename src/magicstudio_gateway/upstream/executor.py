"""Concurrent fan-out of generation calls to the upstream.

Every call settles on its own: a failed call becomes a ``Rejected`` outcome
and never cancels its siblings. ``execute`` always returns one outcome per
requested image.
"""
from __future__ import annotations
import asyncio
import base64
import logging

import httpx

from magicstudio_gateway.common.config import Settings
from magicstudio_gateway.common.schema import BatchResult, Fulfilled, Rejected, UpstreamCallOutcome
from magicstudio_gateway.upstream.request_builder import UPSTREAM_HEADERS, build_form

LOGGER = logging.getLogger("magicstudio.upstream")

class UpstreamExecutor:
    """Issues generation calls against the configured upstream endpoint."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def execute(self, prompt: str, count: int = 1) -> BatchResult:
        """
        Run ``count`` generation calls concurrently and wait for all of them.

        Args:
            prompt: Text prompt.
            count: Number of images to request, at least 1.

        Returns:
            One outcome per call, in launch order.
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        async with httpx.AsyncClient(timeout=self.settings.upstream_timeout) as client:
            outcomes = await asyncio.gather(
                *(self._call(client, prompt) for _ in range(count))
            )

        fulfilled = sum(isinstance(o, Fulfilled) for o in outcomes)
        LOGGER.info("Upstream batch settled: %s/%s fulfilled", fulfilled, count)
        return list(outcomes)

    async def _call(self, client: httpx.AsyncClient, prompt: str) -> UpstreamCallOutcome:
        try:
            response = await client.post(
                self.settings.upstream_url,
                headers=UPSTREAM_HEADERS,
                files=build_form(prompt, self.settings.upstream_client_id),
            )
        except Exception as e:
            LOGGER.warning("Upstream request failed: %r", e)
            return Rejected(reason=f"Upstream request failed: {e!r}")

        # httpx reads the whole body for non-streamed requests, so nothing is left open.
        if not response.is_success:
            reason = f"Upstream {response.status_code}: {response.text}"
            LOGGER.warning("%s", reason)
            return Rejected(reason=reason)

        content_type = response.headers.get("content-type")
        if not content_type or "image" not in content_type:
            reason = f"Upstream returned non-image: {content_type}"
            LOGGER.warning("%s", reason)
            return Rejected(reason=reason)

        return Fulfilled(image_b64=base64.b64encode(response.content).decode("ascii"))
