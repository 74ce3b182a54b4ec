# src/playground_api/completions.py
"""
Completion proxy: availability check, backend call and analytics, streaming or not.

Prompt formatting happens in the route handlers (chat vs. language task);
everything after the prompt exists lives here.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncGenerator, Callable, Dict, Iterable, Iterator, List, Optional

from playground_api import fast_json as json
from playground_api.analytics import AnalyticsRecorder
from playground_api.config import GenerationParams
from playground_api.errors import BackendRequestFailed, InternalError, PlaygroundError
from playground_api.middleware.ollama import ModelCatalog, OllamaClient, OllamaTranslator, resolve_model
from playground_api.prompt_formatter import estimate_tokens
from playground_api.schema.streaming import ErrorEvent, FinalEvent, PartialEvent, StreamEvent
from playground_api.settings import PlaygroundSettings
from playground_api.streaming_utils import NDJSONLineBuffer

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    text: str
    model: str
    token_count: int
    elapsed_seconds: float
    success: bool = True
    backend_response: Dict[str, Any] = field(default_factory=dict)


class RelayState(Enum):
    IDLE = "idle"
    AVAILABILITY_CHECKED = "availability_checked"
    FORMATTING = "formatting"
    BACKEND_STREAMING = "backend_streaming"
    DRAINING = "draining"
    TERMINATED = "terminated"


class CompletionService:
    """Runs prompts against the inference backend and records their outcome.

    The backend's model list is fetched fresh for every request.
    """

    def __init__(self, client: OllamaClient, recorder: AnalyticsRecorder, settings: PlaygroundSettings,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.recorder = recorder
        self.settings = settings
        self.translator = OllamaTranslator()
        self.clock = clock

    async def list_models(self) -> ModelCatalog:
        return await self.client.list_models()

    async def resolve(self, requested: Optional[str]) -> str:
        """Model to run for *requested*; raises BackendUnavailable if the health check fails."""
        catalog = await self.client.list_models()
        available = catalog.names
        model = resolve_model(requested, available, self.settings.fallback_model)
        if not available:
            logger.warning(f"Ollama reports no models, using fallback '{model}'")
        elif model != requested:
            logger.warning(f"Model '{requested}' not found, using '{model}' instead")
        return model

    async def record_failure(self, model: str, tokens: int, started_at: float):
        await self.recorder.record(
            model=model or "unknown",
            tokens=tokens,
            response_time=self.clock() - started_at,
            success=False,
            cost=0.0,
        )

    async def complete(self, params: GenerationParams, prompt: str, started_at: float) -> CompletionResult:
        """Non-streaming completion.

        *started_at* is the handler's clock reading when the request body had
        been parsed; elapsed time runs until the backend body is fully read.
        """
        model_used = params.model or "unknown"
        input_tokens = estimate_tokens(prompt)

        try:
            model_used = await self.resolve(params.model)
            payload = self.translator.build_generate_request(model_used, prompt, params, stream=False)
            body = await self.client.generate(payload)
        except PlaygroundError:
            await self.record_failure(model_used, input_tokens, started_at)
            raise
        except Exception as e:
            logger.error(f"Completion failed for model '{model_used}': {e}", exc_info=True)
            await self.record_failure(model_used, input_tokens, started_at)
            raise InternalError() from e

        elapsed = self.clock() - started_at
        text = body.get("response") or ""
        tokens = input_tokens + estimate_tokens(text)

        await self.recorder.record(model=model_used, tokens=tokens, response_time=elapsed, success=True, cost=0.0)

        return CompletionResult(
            text=text,
            model=model_used,
            token_count=tokens,
            elapsed_seconds=elapsed,
            backend_response=body,
        )

    async def open_stream(self, params: GenerationParams, prompt: str, started_at: float) -> "StreamRelay":
        """Check availability up front so a dead backend is still reported as a 503 status."""
        relay = StreamRelay(self, params, prompt, started_at)
        try:
            await relay.check_availability()
        except PlaygroundError:
            await self.record_failure(relay.model, relay.input_tokens, started_at)
            raise
        return relay


class StreamRelay:
    """One streamed completion, relayed fragment by fragment.

    Moves forward only: IDLE -> AVAILABILITY_CHECKED -> FORMATTING ->
    BACKEND_STREAMING -> DRAINING -> TERMINATED. ``events()`` yields partial
    events in the order the backend produced them and ends with exactly one
    FinalEvent or ErrorEvent.
    """

    def __init__(self, service: CompletionService, params: GenerationParams, prompt: str, started_at: float):
        self.service = service
        self.params = params
        self.prompt = prompt
        self.started_at = started_at
        self.model = params.model or "unknown"
        self.input_tokens = estimate_tokens(prompt)
        self.fragments: List[str] = []
        self.state = RelayState.IDLE
        self._buffer = NDJSONLineBuffer()

    async def check_availability(self):
        self.model = await self.service.resolve(self.params.model)
        self.state = RelayState.AVAILABILITY_CHECKED

    @property
    def token_count(self) -> int:
        return self.input_tokens + estimate_tokens("".join(self.fragments))

    def _parse_lines(self, lines: Iterable[str]) -> Iterator[PartialEvent]:
        for line in lines:
            if self.state is RelayState.DRAINING:
                return
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"[STREAM] Skipping malformed line from Ollama: {line[:200]!r} ({e})")
                continue
            if not isinstance(data, dict):
                logger.warning(f"[STREAM] Skipping non-object line from Ollama: {line[:200]!r}")
                continue

            if data.get("error"):
                raise BackendRequestFailed(200, str(data["error"]))

            fragment = data.get("response")
            if fragment:
                self.fragments.append(fragment)
                yield PartialEvent(text=fragment)

            if data.get("done"):
                self.state = RelayState.DRAINING

    async def _finish(self, success: bool, elapsed: Optional[float] = None):
        self.state = RelayState.TERMINATED
        if elapsed is None:
            elapsed = self.service.clock() - self.started_at
        await self.service.recorder.record(
            model=self.model,
            tokens=self.token_count,
            response_time=elapsed,
            success=success,
            cost=0.0,
        )

    async def events(self) -> AsyncGenerator[StreamEvent, None]:
        if self.state is not RelayState.AVAILABILITY_CHECKED:
            raise RuntimeError(f"Relay cannot start from state {self.state.value}")

        self.state = RelayState.FORMATTING
        payload = self.service.translator.build_generate_request(self.model, self.prompt, self.params, stream=True)
        chunks = self.service.client.stream_generate(payload)
        self.state = RelayState.BACKEND_STREAMING
        error: Optional[str] = None

        try:
            try:
                async for chunk in chunks:
                    for event in self._parse_lines(self._buffer.feed(chunk)):
                        yield event
                    if self.state is RelayState.DRAINING:
                        break
                if self.state is RelayState.BACKEND_STREAMING:
                    # Body ended without a done flag; whatever is buffered is the last line
                    for event in self._parse_lines(self._buffer.flush()):
                        yield event
            except BackendRequestFailed as e:
                error = f"Ollama API error: {e.error_text}"
            except PlaygroundError as e:
                error = e.message
            except Exception as e:
                logger.error(f"Streaming error: {e}", exc_info=True)
                error = "Streaming failed"
            finally:
                await chunks.aclose()

            if error is not None:
                await self._finish(success=False)
                yield ErrorEvent(message=error)
                return

            self.state = RelayState.DRAINING
            elapsed = self.service.clock() - self.started_at
            final = FinalEvent(elapsed_seconds=elapsed, token_count=self.token_count, model=self.model)
            await self._finish(success=True, elapsed=elapsed)
            yield final
        finally:
            if self.state is not RelayState.TERMINATED:
                logger.info(f"[STREAM] Relay for '{self.model}' stopped before completion")
                await self._finish(success=False)
