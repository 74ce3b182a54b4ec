# src/playground_api/schema/streaming.py
#
# Stream event types for the /api/chat/stream SSE response.
#
# A stream is zero or more partial events followed by exactly one terminal
# event (final or error). Each event knows its own wire payload:
#
#   data: {"response": "Hel", "done": false}
#   data: {"response": "lo", "done": false}
#   data: {"done": true, "response_time": 0.42, "tokens_used": 12, "model": "phi"}
#
# or, when the backend fails mid-stream:
#
#   data: {"error": "Streaming failed"}

from typing import Annotated, Dict, Literal, Union

from pydantic import BaseModel, Field

from playground_api import fast_json as json


class PartialEvent(BaseModel):
    """One response fragment, forwarded as soon as the backend emits it."""
    type: Literal["partial"] = "partial"
    text: str

    @property
    def terminal(self) -> bool:
        return False

    def payload(self) -> Dict:
        return {"response": self.text, "done": False}


class FinalEvent(BaseModel):
    """Terminal summary once the backend signals completion."""
    type: Literal["final"] = "final"
    elapsed_seconds: float
    token_count: int
    model: str

    @property
    def terminal(self) -> bool:
        return True

    def payload(self) -> Dict:
        return {
            "done": True,
            "response_time": self.elapsed_seconds,
            "tokens_used": self.token_count,
            "model": self.model,
        }


class ErrorEvent(BaseModel):
    """Terminal event when the backend fails before completion."""
    type: Literal["error"] = "error"
    message: str

    @property
    def terminal(self) -> bool:
        return True

    def payload(self) -> Dict:
        return {"error": self.message}


StreamEvent = Annotated[
    Union[PartialEvent, FinalEvent, ErrorEvent],
    Field(discriminator="type"),
]


def to_sse(event: StreamEvent) -> str:
    """Render one event as a server-sent-events frame."""
    return f"data: {json.dumps(event.payload())}\n\n"
