"""OpenAI-compatible FastAPI front for the MagicStudio art generator.

Endpoints:
- GET  /, /health
- GET  /v1/models
- POST /v1/images/generations  { "prompt": "...", "n": 1, "response_format": "b64_json" }
- POST /v1/chat/completions    { "messages": [...], "model": "...", "stream": false }

All /v1 routes require ``Authorization: Bearer <API_KEY>``.
"""
from __future__ import annotations
import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from magicstudio_gateway import __version__
from magicstudio_gateway.common.config import Settings
from magicstudio_gateway.common.errors import ClientError, GatewayError, UnauthorizedError
from magicstudio_gateway.common.logging_setup import setup_logging
from magicstudio_gateway.common.schema import ChatCompletionIn, GenerationRequest, ImageGenerationIn
from magicstudio_gateway.serve.chat_stream import ChatStream, Executor
from magicstudio_gateway.serve.synthesis import chat_completion, images_response, new_completion_id
from magicstudio_gateway.upstream.executor import UpstreamExecutor

LOGGER = logging.getLogger("magicstudio.app")

SERVICE_NAME = "magicstudio-gateway"

def _validation_message(err: RequestValidationError) -> str:
    """Render the first body validation error; unparsable or non-object bodies are "Invalid JSON"."""
    first = err.errors()[0]
    loc = tuple(first.get("loc", ()))
    if first.get("type") == "json_invalid" or loc in (("body",), ()):
        return "Invalid JSON"
    if loc[0] == "body":
        loc = loc[1:]
    return f"Invalid '{'.'.join(str(part) for part in loc)}': {first.get('msg')}"

def create_app(settings: Settings | None = None, executor: Executor | None = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Configuration; read from the environment when omitted.
        executor: Upstream executor; a real ``UpstreamExecutor`` when omitted.
    """
    settings = settings or Settings.from_env()
    executor = executor or UpstreamExecutor(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        LOGGER.info(
            "Gateway ready: upstream=%s models=%s max_images=%s",
            settings.upstream_url,
            ",".join(settings.known_models),
            settings.max_images,
        )
        yield

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.executor = executor
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _validation_message(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 405:
            message = f"Method {request.method} not allowed for {request.url.path}"
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": f"Internal Server Error: {exc}"})

    def require_api_key(authorization: str | None = Header(None)) -> None:
        if not authorization or not authorization.startswith("Bearer "):
            LOGGER.warning("Rejected request without bearer token")
            raise UnauthorizedError()
        if not secrets.compare_digest(authorization[len("Bearer "):], settings.api_key):
            LOGGER.warning("Rejected request with wrong bearer token")
            raise UnauthorizedError()

    @app.get("/")
    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": SERVICE_NAME, "version": __version__}

    # Browser preflights are answered by the CORS middleware; this covers bare OPTIONS.
    @app.options("/v1/{path:path}", status_code=204)
    def options_v1(path: str) -> Response:
        return Response(status_code=204)

    v1 = APIRouter(prefix="/v1", dependencies=[Depends(require_api_key)])

    @v1.get("/models")
    def list_models() -> dict[str, Any]:
        created = int(time.time())
        return {
            "object": "list",
            "data": [
                {"id": name, "object": "model", "created": created, "owned_by": SERVICE_NAME}
                for name in settings.known_models
            ],
        }

    @v1.post("/images/generations")
    async def image_generations(body: ImageGenerationIn) -> dict[str, Any]:
        if not body.prompt:
            raise ClientError("Missing 'prompt' parameter.")
        if body.response_format not in (None, "b64_json"):
            raise ClientError("Only 'b64_json' response_format is supported.")
        count = body.n or 1
        if count > settings.max_images:
            raise ClientError(f"'n' must be between 1 and {settings.max_images}.")

        gen = GenerationRequest(prompt=body.prompt, count=count)
        batch = await executor.execute(gen.prompt, gen.count)
        try:
            return images_response(batch, gen.response_format)
        except GatewayError:
            LOGGER.error("All %s upstream calls failed", gen.count)
            raise

    @v1.post("/chat/completions")
    async def chat_completions(body: ChatCompletionIn):
        if not body.messages:
            raise ClientError("Missing 'messages' in body.")

        user_message = body.last_user_message()
        prompt = user_message.text() if user_message else ""
        if not prompt:
            raise ClientError("No user message found.")

        model = body.model or settings.default_model
        completion_id = new_completion_id()

        if body.stream:
            stream = ChatStream(executor, prompt, model, completion_id)
            return StreamingResponse(
                stream.sse(),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
            )

        batch = await executor.execute(prompt, 1)
        try:
            return chat_completion(batch, model, completion_id)
        except GatewayError:
            LOGGER.error("Chat completion upstream call failed")
            raise

    app.include_router(v1)
    return app

SETTINGS = Settings.from_env()
setup_logging(SETTINGS.log_level)
app = create_app(SETTINGS)
