"""Exception handlers mapping agent errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agent_runtime.platform.agent.errors import (
    AgentConfigurationError,
    AgentRuntimeError,
    AgentServiceError,
    AgentValidationError,
)


def status_for(exc: AgentRuntimeError) -> int:
    """HTTP status for an agent error."""
    match exc:
        case AgentValidationError():
            return 422
        case AgentConfigurationError():
            return 400
        case AgentServiceError():
            return 502
    return 500


async def agent_error_handler(request: Request, exc: AgentRuntimeError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "retryable": exc.retryable,
            "details": exc.details,
        },
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AgentRuntimeError, agent_error_handler)
