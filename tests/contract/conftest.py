# tests/contract/conftest.py
#
# Shared fixtures for contract tests. Creates a FastAPI TestClient backed by
# a fake Ollama client -- no Ollama server needed. Simulated latency is zero
# and the fine-tuning scheduler's clock is frozen, so jobs stay pending unless
# a test moves them along.

import pytest
from starlette.testclient import TestClient

from helpers.fake_ollama import FakeOllamaClient
from playground_api.fine_tuning import TransitionScheduler
from playground_api.settings import AnalyticsSink, PlaygroundSettings


@pytest.fixture(scope="session")
def fake_ollama():
    return FakeOllamaClient()


@pytest.fixture(scope="session")
def app(fake_ollama):
    """Create and configure the FastAPI app with the fake backend."""
    from playground_api.api import app as fastapi_app, init_app_state

    settings = PlaygroundSettings(
        ollama_host="http://ollama.invalid:11434",
        fallback_model="phi",
        analytics_sink=AnalyticsSink.MEMORY,
        analytics_retention=1000,
        simulated_latency=0.0,
        seed_demo_jobs=False,
    )
    init_app_state(
        fastapi_app,
        settings,
        client=fake_ollama,
        scheduler=TransitionScheduler(clock=lambda: 0.0),
    )
    return fastapi_app


@pytest.fixture(scope="session")
def client(app):
    """TestClient for making in-process HTTP requests."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture(autouse=True)
def reset_state(app, fake_ollama):
    """Every test starts with an empty analytics log, no jobs or MCP contexts, the demo workflow and a healthy backend."""
    fake_ollama.reset()
    app.state.analytics_store.reset()
    app.state.job_store.reset()
    app.state.scheduler.clear()
    app.state.mcp_server.reset()
    app.state.workflow_store.reset()
    yield


@pytest.fixture
def analytics_store(app):
    return app.state.analytics_store


@pytest.fixture
def job_store(app):
    return app.state.job_store


@pytest.fixture
def mcp_server(app):
    return app.state.mcp_server


@pytest.fixture
def workflow_store(app):
    return app.state.workflow_store
