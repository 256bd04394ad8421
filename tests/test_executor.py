from __future__ import annotations

import asyncio
import base64
from typing import Any

import httpx
import pytest

import magicstudio_gateway.upstream.executor as executor_mod
from magicstudio_gateway.common.config import Settings
from magicstudio_gateway.common.schema import Fulfilled, Rejected
from magicstudio_gateway.upstream.executor import UpstreamExecutor

PNG = b"\x89PNG\r\n\x1a\nfake"


def _image(data: bytes = PNG) -> httpx.Response:
    return httpx.Response(200, content=data, headers={"content-type": "image/png"})


class _FakeAsyncClient:
    """Stands in for httpx.AsyncClient; replies are consumed one per post()."""

    replies: list[Any] = []
    calls: list[dict[str, Any]] = []

    def __init__(self, timeout: float | None = None) -> None:  # signature-compatible
        self.timeout = timeout

    async def __aenter__(self) -> "_FakeAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        return None

    async def post(self, url: str, headers: dict[str, str] | None = None, files: Any = None) -> httpx.Response:
        type(self).calls.append({"url": url, "headers": headers, "files": files})
        reply = type(self).replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_client(monkeypatch: pytest.MonkeyPatch) -> type[_FakeAsyncClient]:
    _FakeAsyncClient.replies = []
    _FakeAsyncClient.calls = []
    monkeypatch.setattr(executor_mod.httpx, "AsyncClient", _FakeAsyncClient)
    return _FakeAsyncClient


def _executor() -> UpstreamExecutor:
    return UpstreamExecutor(Settings(upstream_url="https://upstream.test/gen", upstream_client_id="cid"))


def test_single_success_is_base64(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [_image()]
    batch = asyncio.run(_executor().execute("a cat", 1))

    assert batch == [Fulfilled(image_b64=base64.b64encode(PNG).decode())]
    call = fake_client.calls[0]
    assert call["url"] == "https://upstream.test/gen"
    assert call["headers"]["Origin"] == "https://magicstudio.com"
    assert call["files"]["prompt"] == (None, "a cat")
    assert call["files"]["client_id"] == (None, "cid")


def test_non_2xx_is_rejected_with_status(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [httpx.Response(429, text="slow down")]
    (outcome,) = asyncio.run(_executor().execute("a cat", 1))

    assert isinstance(outcome, Rejected)
    assert "429" in outcome.reason
    assert "slow down" in outcome.reason


def test_non_image_content_type_is_rejected(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [httpx.Response(200, json={"detail": "nope"})]
    (outcome,) = asyncio.run(_executor().execute("a cat", 1))

    assert isinstance(outcome, Rejected)
    assert "non-image" in outcome.reason
    assert "application/json" in outcome.reason


def test_transport_error_is_rejected(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [httpx.ReadTimeout("timed out")]
    (outcome,) = asyncio.run(_executor().execute("a cat", 1))

    assert isinstance(outcome, Rejected)
    assert "timed out" in outcome.reason


def test_mixed_batch_settles_every_call(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [
        _image(b"one"),
        httpx.Response(500, text="boom"),
        RuntimeError("connection reset"),
        _image(b"two"),
    ]
    batch = asyncio.run(_executor().execute("a cat", 4))

    assert len(batch) == 4
    assert len(fake_client.calls) == 4
    assert [type(o) for o in batch] == [Fulfilled, Rejected, Rejected, Fulfilled]
    assert batch[3] == Fulfilled(image_b64=base64.b64encode(b"two").decode())


@pytest.mark.parametrize("count", [1, 3, 6])
def test_all_failures_still_return_count_outcomes(fake_client: type[_FakeAsyncClient], count: int) -> None:
    fake_client.replies = [httpx.Response(503, text="down") for _ in range(count)]
    batch = asyncio.run(_executor().execute("a cat", count))

    assert len(batch) == count
    assert all(isinstance(o, Rejected) for o in batch)


def test_each_call_gets_its_own_user_id(fake_client: type[_FakeAsyncClient]) -> None:
    fake_client.replies = [_image(), _image(), _image()]
    asyncio.run(_executor().execute("a cat", 3))

    ids = {call["files"]["anonymous_user_id"][1] for call in fake_client.calls}
    assert len(ids) == 3


def test_count_below_one_is_refused(fake_client: type[_FakeAsyncClient]) -> None:
    with pytest.raises(ValueError):
        asyncio.run(_executor().execute("a cat", 0))
    assert fake_client.calls == []
