# ruff: noqa: E402
"""FastAPI application factory and server configuration.

This module creates and configures the FastAPI application with all middleware,
routes, and lifecycle management.
"""

import asyncio
import logging
import os
import signal
import warnings
from contextlib import asynccontextmanager

# Suppress Pydantic serializer warnings from LangChain message models.
# These come from type mismatches between langchain-litellm and Pydantic's
# expected schemas.
warnings.filterwarnings("ignore", message="Pydantic serializer warnings")

import httpx
from fastapi import FastAPI

from agent_runtime.platform.agent.runner import AgentRunner
from agent_runtime.platform.agent.secrets import EnvSecretsResolver
from agent_runtime.platform.agent.stream import HttpTraceSink
from agent_runtime.platform.observability import errors as bugsnag
from agent_runtime.platform.observability.logging import configure_logging
from agent_runtime.platform.observability.metrics import prometheus_middleware
from agent_runtime.platform.server.errors import add_exception_handlers
from agent_runtime.platform.server.health import HealthCheck
from agent_runtime.platform.server.middlewares import CorrelationIdMiddleware
from agent_runtime.platform.server.routes import root as root_router
from agent_runtime.platform.settings import Settings

logger = logging.getLogger(__name__)


def lifespan_closure(settings: Settings):
    @asynccontextmanager
    async def lifespan(app):
        """
        Use this to initialize all of the singleton dependencies and shared
        objects.  i.e. http client, runner, bugsnag, etc
        """
        if settings.bugsnag.release_stage in ["production", "development"]:
            signal_handler = SignalHandler(app)
            signal_handler.register_signal_handler()

        # Configure structured logging (JSON in prod/dev, console in local)
        if settings.app_http.log_json is not None:
            json_output = settings.app_http.log_json
        else:
            json_output = settings.bugsnag.release_stage != "local"
        configure_logging(settings.app_http.log_level, json_output=json_output)

        bugsnag.initialize_bugsnag(
            settings.bugsnag.api_key,
            settings.bugsnag.release_stage,
        )

        app.state.settings = settings

        # Shared HTTP client for MCP tools and the trace sink
        app.state.http_client = httpx.AsyncClient(
            timeout=settings.mcp.timeout,
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        )
        app.state.secrets = EnvSecretsResolver(prefix=settings.secrets.env_prefix)
        app.state.trace_sink = (
            HttpTraceSink(
                settings.agent_trace.url,
                http_client=app.state.http_client,
                timeout=settings.agent_trace.timeout,
            )
            if settings.agent_trace.url
            else None
        )
        app.state.runner = AgentRunner(
            provider_defaults=settings.providers,
            mcp_timeout=settings.mcp.timeout,
        )

        HealthCheck.enable()
        try:
            yield
        finally:
            await app.state.http_client.aclose()

    return lifespan


def create_app(settings: Settings):
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(lifespan=lifespan_closure(settings))
    app.add_middleware(CorrelationIdMiddleware)
    app.middleware("http")(prometheus_middleware)
    add_exception_handlers(app)

    # Platform routes (health, metrics) and agent routes
    app.include_router(root_router)

    return app


class SignalHandler:
    def __init__(self, app: FastAPI):
        self.app = app

    async def handle_exit(self):
        """
        Handle the exit of the server
        Do NOT use FastAPI @app.on_event("shutdown") or lifespan
        The problem with this method is, it is invoked *after* server
        stops accepting request, so it does not give us any time to
        drain requests in progress and DNS cache to refresh
        """
        HealthCheck.disable()
        for _ in range(20):
            logger.info("Shutting down...")
            await asyncio.sleep(1)

        # stop service successfully
        os.kill(os.getpid(), signal.SIGUSR1)

    def signal_handler(self):
        """
        Signal handler function
        """
        asyncio.create_task(self.handle_exit())

    def register_signal_handler(self) -> None:
        """
        Register signal handlers for the server
        """
        loop = asyncio.get_running_loop()
        for sig in [signal.SIGINT, signal.SIGTERM]:
            loop.add_signal_handler(sig, self.signal_handler)
