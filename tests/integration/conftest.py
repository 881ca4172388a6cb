"""Integration test fixtures.

This module provides shared fixtures for integration tests including:
- A stubbed chat model behind a real LlmClient
- A recording trace sink
- Route/handler tests with a shallow app setup

MCP endpoints are mocked at the HTTP level with respx.
"""

from collections.abc import Callable, Generator
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from fakes import RecordingSink, ai_message, make_chat_model

from agent_runtime.platform.agent.config import ModelProvider, ResolvedChatModel
from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.runner import AgentRunner
from agent_runtime.platform.agent.secrets import EnvSecretsResolver
from agent_runtime.platform.agent.stream import AgentStreamRecorder
from agent_runtime.platform.server.errors import add_exception_handlers
from agent_runtime.platform.server.health import HealthCheck
from agent_runtime.platform.server.routes import root as root_router
from agent_runtime.platform.settings import ProviderDefaults

# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def resolved_model() -> ResolvedChatModel:
    return ResolvedChatModel(
        provider=ModelProvider.OPENAI,
        model_id="gpt-4o-mini",
        api_key="sk-test",
    )


@pytest.fixture
def llm_factory() -> Callable[[Mock], Callable[[ResolvedChatModel, float, int], LlmClient]]:
    """Create LlmClient factories wrapping a stub chat model."""

    def factory(chat_model: Mock):
        def build(model: ResolvedChatModel, temperature: float, max_tokens: int) -> LlmClient:
            return LlmClient(model, temperature, max_tokens, llm=chat_model)

        return build

    return factory


@pytest.fixture
def provider_defaults() -> ProviderDefaults:
    return ProviderDefaults(openai_base_url="", gemini_base_url="", openrouter_http_referer="")


# =============================================================================
# Trace Fixtures
# =============================================================================


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def recorder(sink: RecordingSink) -> AgentStreamRecorder:
    return AgentStreamRecorder("run-1", sink=sink)


# =============================================================================
# FastAPI App Fixtures (Shallow - no middleware, minimal lifespan)
# =============================================================================


@pytest.fixture
def stub_chat_model() -> Mock:
    """Chat model answering a single plain completion."""
    return make_chat_model(ai_message("Hello from the agent"))


@pytest.fixture
def test_app(stub_chat_model: Mock, llm_factory, provider_defaults: ProviderDefaults) -> FastAPI:
    """Create a minimal test FastAPI app for integration tests.

    This is intentionally SHALLOW - no middleware, no full lifespan.
    Tests route handlers and their interaction with dependencies.
    """
    app = FastAPI()
    add_exception_handlers(app)

    app.state.runner = AgentRunner(
        provider_defaults=provider_defaults,
        llm_factory=llm_factory(stub_chat_model),
    )
    app.state.secrets = EnvSecretsResolver(environ={"AGENT_SECRET_OPENAI": "sk-from-secret"})
    app.state.http_client = None
    app.state.trace_sink = None

    app.include_router(root_router)

    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Create a test client for the test app.

    No context manager needed since we're not using lifespan.
    """
    return TestClient(test_app)


@pytest.fixture
def client_with_health_enabled(test_app: FastAPI) -> Generator[TestClient]:
    """Create a test client with health checks enabled."""
    HealthCheck.enable()
    yield TestClient(test_app)
    HealthCheck.disable()


@pytest.fixture
def client_with_health_disabled(test_app: FastAPI) -> Generator[TestClient]:
    """Create a test client with health checks disabled."""
    HealthCheck.disable()
    yield TestClient(test_app)
