# src/playground_api/__init__.py
"""HTTP API layer for the Ollama playground."""

__version__ = "0.3.0"
