# src/playground_api/errors.py
"""Error taxonomy for the playground API.

Each error carries the HTTP status it maps to. The app installs one exception
handler that turns any PlaygroundError into ``{"error": message}``.
"""


class PlaygroundError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendUnavailable(PlaygroundError):
    """The inference backend could not be reached at all."""

    status_code = 503

    def __init__(self, message: str = "Ollama is not running. Please start Ollama first."):
        super().__init__(message)


class BackendRequestFailed(PlaygroundError):
    """The backend answered, but with a non-success status."""

    status_code = 500

    def __init__(self, status: int, error_text: str):
        super().__init__(f"Failed to generate response from Ollama: {error_text}")
        self.status = status
        self.error_text = error_text


class InvalidRequest(PlaygroundError):
    status_code = 400


class NotFound(PlaygroundError):
    status_code = 404


class InternalError(PlaygroundError):
    """Unexpected failure; the client only sees a generic message."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
