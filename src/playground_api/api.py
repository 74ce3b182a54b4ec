# src/playground_api/api.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from playground_api import __version__
from playground_api.analytics import AnalyticsRecorder, AnalyticsStore
from playground_api.analytics_api import analytics_router
from playground_api.audio_api import audio_router
from playground_api.completions import CompletionService
from playground_api.config import (
    ChatCompletionResponse,
    ChatRequest,
    LanguageRequest,
    LanguageResponse,
    ModelListResponse,
)
from playground_api.errors import BackendUnavailable, PlaygroundError
from playground_api.fine_tuning import FineTuningJobStore, TransitionScheduler
from playground_api.fine_tuning_api import fine_tuning_router
from playground_api.image_api import image_router
from playground_api.mcp import MCPServer
from playground_api.mcp_api import mcp_router
from playground_api.middleware.ollama import OllamaClient
from playground_api.prompt_formatter import format_chat_prompt, format_task_prompt
from playground_api.schema.streaming import to_sse
from playground_api.settings import PlaygroundSettings, get_settings
from playground_api.streaming_utils import relay_until_disconnect
from playground_api.utils import (
    log_request_complete,
    log_request_model,
    log_request_start,
    log_response_summary,
    new_request_id,
    sanitize_dict_for_debug,
)
from playground_api.workflows import WorkflowStore
from playground_api.workflows_api import workflows_router


# Rejected bodies on these routes still count as failed completions in analytics
COMPLETION_PATHS = {"/api/chat", "/api/chat/stream", "/api/language"}


def init_app_state(app: FastAPI, settings: PlaygroundSettings, client=None,
                   scheduler: Optional[TransitionScheduler] = None):
    """Wire the backend client and the process-wide stores onto ``app.state``.

    Called by the server before uvicorn starts; the lifespan falls back to
    it when the app is served some other way.
    """
    client = client or OllamaClient.from_settings(settings)
    scheduler = scheduler or TransitionScheduler()

    analytics_store = AnalyticsStore(
        retention=settings.analytics_retention,
        window_days=settings.analytics_window_days,
    )
    recorder = AnalyticsRecorder(analytics_store, settings)

    job_store = FineTuningJobStore(scheduler, running_after=2.0, completed_after=30.0)
    if settings.seed_demo_jobs:
        job_store.seed_demo_jobs()

    app.state.settings = settings
    app.state.ollama_client = client
    app.state.analytics_store = analytics_store
    app.state.analytics_recorder = recorder
    app.state.completion_service = CompletionService(client, recorder, settings)
    app.state.scheduler = scheduler
    app.state.job_store = job_store
    app.state.mcp_server = MCPServer()
    app.state.workflow_store = WorkflowStore()
    logging.debug(f"Playground settings:\n{sanitize_dict_for_debug(settings.to_dict())}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not hasattr(app.state, "settings"):
        init_app_state(app, get_settings())

    ticker = asyncio.create_task(app.state.scheduler.run_forever())
    logging.info(f"Playground API ready, using Ollama at {app.state.settings.ollama_host}")
    yield

    ticker.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await ticker
    await app.state.ollama_client.close()
    logging.info("Server shut down.")


app = FastAPI(
    title="Playground API - Local AI Playground Backend",
    version=__version__,
    description="Chat and language completions proxied to a local Ollama server, plus simulated audio, image, fine-tuning and MCP tool endpoints, node-graph workflows and in-memory usage analytics",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=[
        {
            "name": "Chat",
            "description": "Chat and task completions served by the local Ollama backend"
        },
        {
            "name": "Analytics",
            "description": "In-memory usage analytics"
        },
        {
            "name": "Audio",
            "description": "Simulated text-to-speech"
        },
        {
            "name": "Image",
            "description": "Simulated image generation"
        },
        {
            "name": "Fine-tuning",
            "description": "Simulated fine-tuning jobs"
        },
        {
            "name": "MCP",
            "description": "Simulated Model Context Protocol tool server"
        },
        {
            "name": "Workflows",
            "description": "Node-graph workflows run against the chat backend and MCP tools"
        }
    ]
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlaygroundError)
async def playground_error_handler(request: Request, exc: PlaygroundError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    message = "; ".join(problems) or "Invalid request"
    logging.warning(f"Rejected request to {request.url.path}: {message}")

    if request.url.path in COMPLETION_PATHS:
        body = exc.body if isinstance(exc.body, dict) else {}
        model = body.get("model")
        await request.app.state.analytics_recorder.record(
            model=model if isinstance(model, str) and model else "unknown",
            tokens=0,
            response_time=0.0,
            success=False,
        )
    return JSONResponse(status_code=400, content={"error": message})


@app.get("/api/chat",
    summary="List Available Models",
    description="""
List the models the local Ollama server currently has.

The list is fetched from Ollama on every call. When Ollama cannot be reached the
response is a 503 with `status: "offline"` and an empty model list.
    """,
    response_model=ModelListResponse,
    responses={503: {"description": "Ollama is not running"}},
    tags=["Chat"]
)
async def list_models(request: Request):
    service = request.app.state.completion_service
    try:
        catalog = await service.list_models()
    except BackendUnavailable as e:
        logging.warning(f"Failed to fetch Ollama models: {e.message}")
        return JSONResponse(
            status_code=503,
            content={"error": "Ollama is not running or not accessible", "models": [], "status": "offline"},
        )
    return {"models": catalog.models, "status": "online"}


@app.post("/api/chat",
    summary="Create Chat Completion",
    description="""
Generate a reply to a conversation using a local Ollama model.

**Model selection:** the requested `model` is used when Ollama has it;
otherwise the first model Ollama lists. When Ollama lists no models at all,
the configured fallback model (`phi` by default) is tried.

**Sampling:** `temperature` is clamped to [0, 2], `top_p` to [0, 1] and
`max_tokens` to [1, 4096]. Out-of-range values are corrected, not rejected.

**Usage:** `tokens_used` is an estimate (about four characters per token) over
the prompt and the reply, not a tokenizer count.
    """,
    response_model=ChatCompletionResponse,
    responses={
        400: {"description": "Malformed request"},
        500: {"description": "Ollama rejected the generation"},
        503: {"description": "Ollama is not running"},
    },
    tags=["Chat"]
)
async def create_chat_completion(request: Request, chat_request: ChatRequest):
    service = request.app.state.completion_service
    started_at = service.clock()
    request_id = new_request_id()
    log_request_start(request_id, "/api/chat", chat_request.model)

    prompt = format_chat_prompt(chat_request.messages, chat_request.system_prompt)
    try:
        result = await service.complete(chat_request, prompt, started_at)
    except PlaygroundError as e:
        log_request_complete(request_id, success=False, error_msg=e.message)
        raise

    log_request_model(request_id, result.model)
    log_request_complete(request_id)
    log_response_summary(request_id, len(result.text), result.token_count, result.elapsed_seconds)

    return service.translator.translate_generate_to_chat_response(
        {"model": result.model, **result.backend_response},
        tokens_used=result.token_count,
        response_time=result.elapsed_seconds,
    )


@app.post("/api/chat/stream",
    summary="Stream Chat Completion",
    description="""
Same as `POST /api/chat`, streamed as server-sent events.

Each fragment arrives as `data: {"response": "...", "done": false}` as soon as
Ollama produces it. The stream ends with exactly one of:

- `data: {"done": true, "response_time": ..., "tokens_used": ..., "model": "..."}`
- `data: {"error": "..."}`

A 503 is returned as a plain status (before any event) when Ollama is down.
    """,
    responses={
        200: {"description": "Event stream", "content": {"text/event-stream": {}}},
        400: {"description": "Malformed request"},
        503: {"description": "Ollama is not running"},
    },
    tags=["Chat"]
)
async def stream_chat_completion(request: Request, chat_request: ChatRequest):
    service = request.app.state.completion_service
    started_at = service.clock()
    request_id = new_request_id()
    log_request_start(request_id, "/api/chat/stream", chat_request.model)

    prompt = format_chat_prompt(chat_request.messages, chat_request.system_prompt)
    try:
        relay = await service.open_stream(chat_request, prompt, started_at)
    except PlaygroundError as e:
        log_request_complete(request_id, success=False, error_msg=e.message)
        raise
    log_request_model(request_id, relay.model)

    async def event_stream():
        error_msg = None
        try:
            async for event in relay_until_disconnect(relay.events(), request, log_prefix="[STREAM] "):
                if event.type == "error":
                    error_msg = event.message
                yield to_sse(event)
        finally:
            log_request_complete(request_id, success=error_msg is None, error_msg=error_msg)
            log_response_summary(request_id, len("".join(relay.fragments)), relay.token_count)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@app.post("/api/language",
    summary="Run Language Task",
    description="""
Run a single prompt through one of the task templates:
`completion`, `summarization`, `translation`, `question-answering`,
`code-generation`, `code-explanation`, `creative-writing`.
Unknown tasks send the prompt unchanged.

Model selection, clamping and usage estimates work as for `POST /api/chat`.
    """,
    response_model=LanguageResponse,
    responses={
        400: {"description": "Missing prompt"},
        500: {"description": "Ollama rejected the generation"},
        503: {"description": "Ollama is not running"},
    },
    tags=["Chat"]
)
async def run_language_task(request: Request, language_request: LanguageRequest):
    service = request.app.state.completion_service
    started_at = service.clock()
    request_id = new_request_id()
    log_request_start(request_id, f"/api/language ({language_request.task})", language_request.model)

    prompt = format_task_prompt(language_request.prompt, language_request.task)
    try:
        result = await service.complete(language_request, prompt, started_at)
    except PlaygroundError as e:
        log_request_complete(request_id, success=False, error_msg=e.message)
        raise

    log_request_model(request_id, result.model)
    log_request_complete(request_id)
    log_response_summary(request_id, len(result.text), result.token_count, result.elapsed_seconds)

    return service.translator.translate_generate_to_language_response(
        {"model": result.model, **result.backend_response},
        task=language_request.task,
        tokens_used=result.token_count,
        response_time=result.elapsed_seconds,
    )


app.include_router(analytics_router)
app.include_router(audio_router)
app.include_router(image_router)
app.include_router(fine_tuning_router)
app.include_router(mcp_router)
app.include_router(workflows_router)
