# src/playground_api/streaming_utils.py
"""Shared streaming helpers: NDJSON line splitting and disconnect-aware relaying."""

import codecs
import logging
from typing import AsyncGenerator, AsyncIterator, List, Optional

from fastapi import Request

logger = logging.getLogger(__name__)


class NDJSONLineBuffer:
    """Split a chunked byte stream into complete text lines.

    Chunks are decoded incrementally, so a multi-byte character or a JSON
    object cut in half by a read boundary is held back until the rest
    arrives. Blank lines are dropped.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        """Return the lines completed by *chunk*, in arrival order."""
        self._pending += self._decoder.decode(chunk)
        *complete, self._pending = self._pending.split("\n")
        return [line for line in complete if line.strip()]

    def flush(self) -> List[str]:
        """Return whatever is left once the stream has ended."""
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [tail] if tail.strip() else []


async def relay_until_disconnect(
    source: AsyncIterator,
    http_request: Optional[Request],
    log_prefix: str = "",
) -> AsyncGenerator:
    """Yield items from *source* until it ends or the client goes away.

    Disconnects are checked between items. On every exit path *source* is
    closed, so whatever backend response it holds open is released right
    away instead of whenever the abandoned generator is collected.

    Args:
        source: Async generator producing items to forward.
        http_request: The Starlette request, used for disconnect detection (may be None).
        log_prefix: Label used in log messages (e.g. "[STREAM] ").
    """
    try:
        async for item in source:
            if http_request is not None and await http_request.is_disconnected():
                logger.info(f"{log_prefix}Client disconnected during streaming")
                return
            yield item
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            logger.debug(f"{log_prefix}Closing upstream stream")
            await aclose()
