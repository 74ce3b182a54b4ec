"""
Async HTTP client for the Ollama inference server.

Every call carries a bounded timeout, and nothing is retried: a failed call
is surfaced to the caller on the same request.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from playground_api import fast_json as json
from playground_api.errors import BackendRequestFailed, BackendUnavailable

logger = logging.getLogger(__name__)


@dataclass
class ModelCatalog:
    """Snapshot of /api/tags taken for a single request."""
    models: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [m["name"] for m in self.models if m.get("name")]


def resolve_model(requested: Optional[str], available: List[str], fallback: str) -> str:
    """Pick the model to run.

    The requested name wins when the backend has it loaded; otherwise the first
    model the backend lists. With nothing listed at all, *fallback* is used.
    """
    if requested and requested in available:
        return requested
    if available:
        return available[0]
    return fallback


class OllamaClient:
    """Thin aiohttp wrapper around /api/tags and /api/generate."""

    def __init__(self, base_url: str = "http://localhost:11434", health_timeout: float = 5.0,
                 request_timeout: float = 300.0, stream_read_timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.health_timeout = health_timeout
        self.request_timeout = request_timeout
        self.stream_read_timeout = stream_read_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings) -> "OllamaClient":
        return cls(
            base_url=settings.ollama_host,
            health_timeout=settings.health_timeout,
            request_timeout=settings.request_timeout,
            stream_read_timeout=settings.stream_read_timeout,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(json_serialize=json.dumps)
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def list_models(self) -> ModelCatalog:
        """Check the backend and return what it has loaded.

        Raises BackendUnavailable when the backend cannot be reached or does not
        answer the health check successfully.
        """
        url = f"{self.base_url}/api/tags"
        timeout = aiohttp.ClientTimeout(total=self.health_timeout)
        try:
            async with self._get_session().get(url, timeout=timeout) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    logger.error(f"Ollama health check returned {resp.status}: {text}")
                    raise BackendUnavailable(f"Ollama health check failed with status {resp.status}")
                body = await resp.json(loads=json.loads, content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Ollama not reachable at {self.base_url}: {e!r}")
            raise BackendUnavailable() from e

        return ModelCatalog(models=list((body or {}).get("models") or []))

    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /api/generate with stream=false and return the parsed body."""
        url = f"{self.base_url}/api/generate"
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        try:
            async with self._get_session().post(url, json=payload, timeout=timeout) as resp:
                if resp.status >= 400:
                    error_text = await resp.text()
                    logger.error(f"Ollama API error ({resp.status}): {error_text}")
                    raise BackendRequestFailed(resp.status, error_text)
                return await resp.json(loads=json.loads, content_type=None)
        except asyncio.TimeoutError as e:
            raise BackendUnavailable(f"Ollama did not respond within {self.request_timeout:g}s") from e
        except aiohttp.ClientError as e:
            logger.error(f"Lost connection to Ollama during generate: {e!r}")
            raise BackendUnavailable(f"Lost connection to Ollama: {e}") from e

    async def stream_generate(self, payload: Dict[str, Any]) -> AsyncIterator[bytes]:
        """POST /api/generate with stream=true, yielding raw body chunks as they arrive.

        The response is released as soon as the generator is closed, so a
        consumer that stops early (client went away) does not leak the
        backend connection.
        """
        url = f"{self.base_url}/api/generate"
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.health_timeout,
            sock_read=self.stream_read_timeout,
        )
        try:
            async with self._get_session().post(url, json=payload, timeout=timeout) as resp:
                if resp.status >= 400:
                    error_text = await resp.text()
                    logger.error(f"Ollama API error ({resp.status}): {error_text}")
                    raise BackendRequestFailed(resp.status, error_text)
                async for chunk in resp.content.iter_any():
                    yield chunk
        except asyncio.TimeoutError as e:
            raise BackendUnavailable(f"Ollama stalled for more than {self.stream_read_timeout:g}s") from e
        except aiohttp.ClientError as e:
            logger.error(f"Lost connection to Ollama during streaming: {e!r}")
            raise BackendUnavailable(f"Lost connection to Ollama: {e}") from e
