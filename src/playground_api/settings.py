# src/playground_api/settings.py
"""
Runtime configuration for the playground API.
Read from environment variables once per app; every value has a working default.
"""

import os
import logging
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class AnalyticsSink(Enum):
    """Where completed-request analytics are delivered"""
    MEMORY = "memory"  # Append straight to this process's AnalyticsStore
    HTTP = "http"  # POST to {base_url}/api/analytics (e.g. a shared playground instance)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using {default}")
        return default


class PlaygroundSettings:
    """Configuration for the backend connection, analytics and simulated generators"""

    def __init__(self, **overrides: Any):
        self.ollama_host = "http://localhost:11434"
        self.health_timeout = 5.0
        self.request_timeout = 300.0
        self.stream_read_timeout = 120.0
        self.fallback_model = "phi"
        self.base_url = "http://localhost:8080"
        self.analytics_sink = AnalyticsSink.MEMORY
        self.analytics_retention = 1000
        self.analytics_window_days = 30
        self.simulated_latency = 1.0
        self.seed_demo_jobs = False

        self._load_config()

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    def _load_config(self):
        """Load configuration from environment variables"""
        self.ollama_host = os.getenv("OLLAMA_HOST", self.ollama_host).rstrip("/")
        if not self.ollama_host.startswith(("http://", "https://")):
            # Ollama's own CLI accepts a bare host:port here
            self.ollama_host = f"http://{self.ollama_host}"

        self.health_timeout = _env_float("OLLAMA_HEALTH_TIMEOUT", self.health_timeout)
        self.request_timeout = _env_float("OLLAMA_REQUEST_TIMEOUT", self.request_timeout)
        self.stream_read_timeout = _env_float("OLLAMA_STREAM_READ_TIMEOUT", self.stream_read_timeout)
        self.fallback_model = os.getenv("PLAYGROUND_FALLBACK_MODEL", self.fallback_model)
        self.base_url = os.getenv("PLAYGROUND_BASE_URL", self.base_url).rstrip("/")

        sink_str = os.getenv("PLAYGROUND_ANALYTICS_SINK", self.analytics_sink.value).lower()
        try:
            self.analytics_sink = AnalyticsSink(sink_str)
        except ValueError:
            logger.warning(f"Invalid analytics sink: {sink_str}, using 'memory'")
            self.analytics_sink = AnalyticsSink.MEMORY

        self.analytics_retention = max(1, _env_int("PLAYGROUND_ANALYTICS_RETENTION", self.analytics_retention))
        self.simulated_latency = max(0.0, _env_float("PLAYGROUND_SIMULATED_LATENCY", self.simulated_latency))
        self.seed_demo_jobs = _env_bool("PLAYGROUND_SEED_DEMO_JOBS")

    @property
    def analytics_url(self) -> str:
        return f"{self.base_url}/api/analytics"

    def scaled_delay(self, seconds: float) -> float:
        """Simulated generator delay after applying PLAYGROUND_SIMULATED_LATENCY."""
        return seconds * self.simulated_latency

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ollama_host": self.ollama_host,
            "health_timeout": self.health_timeout,
            "request_timeout": self.request_timeout,
            "stream_read_timeout": self.stream_read_timeout,
            "fallback_model": self.fallback_model,
            "base_url": self.base_url,
            "analytics_sink": self.analytics_sink.value,
            "analytics_retention": self.analytics_retention,
            "simulated_latency": self.simulated_latency,
            "seed_demo_jobs": self.seed_demo_jobs,
        }


_settings: Optional[PlaygroundSettings] = None


def get_settings() -> PlaygroundSettings:
    global _settings
    if _settings is None:
        _settings = PlaygroundSettings()
    return _settings
