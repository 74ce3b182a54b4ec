# src/playground_api/middleware/ollama/__init__.py
from .translator import OllamaTranslator, clamp
from .client import OllamaClient, ModelCatalog, resolve_model
