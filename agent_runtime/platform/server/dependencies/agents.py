"""Agent dependencies for FastAPI routes."""

from fastapi import Request

from agent_runtime.platform.agent.runner import AgentRunContext, AgentRunner


def get_runner(request: Request) -> AgentRunner:
    """Return the runner created at application startup."""
    return request.app.state.runner


def get_run_context(request: Request) -> AgentRunContext:
    """Build the run context from shared application state.

    Trace events go to the configured trace sink, or to the log when none is
    configured.
    """
    state = request.app.state
    return AgentRunContext(
        trace_sink=getattr(state, "trace_sink", None),
        secrets=state.secrets,
        http_client=state.http_client,
    )
