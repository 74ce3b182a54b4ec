# src/playground_api/utils.py
import copy
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Container, Dict, Optional

from playground_api import fast_json as json

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    return str(uuid.uuid4())


def unique_id(base: str, existing: Container[str]) -> str:
    """*base*, or *base* with the first free ``-N`` suffix when it is taken."""
    candidate = base
    suffix = 1
    while candidate in existing:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def sanitize_dict_for_debug(data: Dict[str, Any], max_chars: int = 100) -> str:
    """Render *data* as indented JSON with long strings (data URLs, prompts) cut short."""
    sanitized = copy.deepcopy(data)
    _truncate_recursive(sanitized, max_chars)
    return json.dumps(sanitized, indent=2)


def _truncate_recursive(obj: Any, max_chars: int) -> None:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if isinstance(value, str) and len(value) > max_chars:
                obj[key] = f"{value[:max_chars]}...[{len(value)} chars]"
            else:
                _truncate_recursive(value, max_chars)
    elif isinstance(obj, list):
        for index, item in enumerate(obj):
            if isinstance(item, str) and len(item) > max_chars:
                obj[index] = f"{item[:max_chars]}...[{len(item)} chars]"
            else:
                _truncate_recursive(item, max_chars)


@dataclass
class RequestMetrics:
    """Container for tracking one request from entry to response."""
    request_id: str
    start_time: float
    endpoint: str
    model: str = "unknown"
    token_count: int = 0

    def elapsed_time(self) -> float:
        return time.time() - self.start_time


class RequestLogger:
    """
    Request lifecycle logger.

    Logs one line when a request starts and one when it ends, keyed by the
    first eight characters of the request id so interleaved requests can be
    told apart.
    """

    def __init__(self):
        self.active_requests: Dict[str, RequestMetrics] = {}

    def start_request(self, request_id: str, endpoint: str, model: Optional[str] = None) -> RequestMetrics:
        metrics = RequestMetrics(
            request_id=request_id,
            start_time=time.time(),
            endpoint=endpoint,
            model=model or "unknown",
        )
        self.active_requests[request_id] = metrics
        logger.info(f"Request {request_id[:8]} started | {endpoint} | Model: {metrics.model}")
        return metrics

    def update_model(self, request_id: str, model: str):
        metrics = self.active_requests.get(request_id)
        if metrics is not None and metrics.model != model:
            logger.debug(f"Request {request_id[:8]} | Model resolved to {model}")
            metrics.model = model

    def complete_request(self, request_id: str, success: bool = True, error_msg: Optional[str] = None):
        metrics = self.active_requests.pop(request_id, None)
        if metrics is None:
            return

        if success:
            status_icon = "[SUCCESS]"
            status_msg = "completed"
        else:
            status_icon = "[ERROR]"
            status_msg = f"failed: {error_msg or 'unknown error'}"

        logger.info(
            f"{status_icon} Request {request_id[:8]} {status_msg} | "
            f"{metrics.endpoint} | {metrics.model} | {metrics.elapsed_time():.2f}s total"
        )


# Global request logger instance
request_logger = RequestLogger()


def log_request_start(request_id: str, endpoint: str, model: Optional[str] = None) -> RequestMetrics:
    """Start logging a new request."""
    return request_logger.start_request(request_id, endpoint, model)


def log_request_model(request_id: str, model: str):
    request_logger.update_model(request_id, model)


def log_request_complete(request_id: str, success: bool = True, error_msg: Optional[str] = None):
    """Log request completion."""
    request_logger.complete_request(request_id, success, error_msg)


def log_response_summary(request_id: str, response_length: int, token_count: int = 0, processing_time: float = 0.0):
    """
    Log a concise response summary.
    """
    tokens_info = f" | {token_count} tokens" if token_count > 0 else ""
    time_info = f" | {processing_time:.2f}s" if processing_time > 0 else ""

    logger.info(f"RESPONSE {request_id[:8]} SUMMARY | {response_length} chars{tokens_info}{time_info}")
