"""
Playground to Ollama translation logic
Builds /api/generate payloads and maps backend responses onto the playground's response shapes
"""

import logging
from typing import Any, Dict

from playground_api.config import GenerationParams

logger = logging.getLogger(__name__)

TEMPERATURE_RANGE = (0.0, 2.0)
TOP_P_RANGE = (0.0, 1.0)
MAX_TOKENS_RANGE = (1, 4096)


def clamp(value, low, high):
    """Pin *value* into [low, high]. Out-of-range input is corrected, never rejected."""
    return max(low, min(high, value))


class OllamaTranslator:
    """Translates between playground requests and the Ollama generate API"""

    def build_options(self, params: GenerationParams) -> Dict[str, Any]:
        """Map sampling parameters onto Ollama's `options`, clamped to the ranges the backend accepts"""
        options = {
            "temperature": clamp(params.temperature, *TEMPERATURE_RANGE),
            "num_predict": clamp(params.max_tokens, *MAX_TOKENS_RANGE),
            "top_p": clamp(params.top_p, *TOP_P_RANGE),
        }

        if (options["temperature"], options["num_predict"], options["top_p"]) != (
            params.temperature, params.max_tokens, params.top_p
        ):
            logger.debug(
                f"Clamped sampling options: temperature={params.temperature}->{options['temperature']}, "
                f"max_tokens={params.max_tokens}->{options['num_predict']}, top_p={params.top_p}->{options['top_p']}"
            )

        return options

    def build_generate_request(self, model: str, prompt: str, params: GenerationParams,
                               stream: bool = False) -> Dict[str, Any]:
        """Create the body for POST /api/generate"""
        return {
            "model": model,
            "prompt": prompt,
            "stream": stream,
            "options": self.build_options(params),
        }

    def translate_generate_to_chat_response(self, ollama_response: Dict[str, Any],
                                            tokens_used: int, response_time: float) -> Dict[str, Any]:
        """Pass through the backend's generate fields and add our usage estimate"""
        return {
            "response": ollama_response.get("response", ""),
            "model": ollama_response.get("model", "unknown"),
            "created_at": ollama_response.get("created_at"),
            "done": ollama_response.get("done", True),
            "total_duration": ollama_response.get("total_duration"),
            "load_duration": ollama_response.get("load_duration"),
            "prompt_eval_count": ollama_response.get("prompt_eval_count"),
            "eval_count": ollama_response.get("eval_count"),
            "tokens_used": tokens_used,
            "response_time": response_time,
        }

    def translate_generate_to_language_response(self, ollama_response: Dict[str, Any], task: str,
                                                tokens_used: int, response_time: float) -> Dict[str, Any]:
        return {
            "response": ollama_response.get("response", ""),
            "model": ollama_response.get("model", "unknown"),
            "task": task,
            "tokens_used": tokens_used,
            "response_time": response_time,
            "created_at": ollama_response.get("created_at"),
            "done": ollama_response.get("done", True),
        }

