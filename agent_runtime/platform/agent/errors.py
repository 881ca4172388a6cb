"""Exception hierarchy for agent runs.

Every error raised by the runtime derives from AgentRuntimeError and carries a
``retryable`` hint plus a ``details`` mapping that callers may surface as-is.
Model provider exceptions are not wrapped and propagate unchanged.
"""

from typing import Any


class AgentRuntimeError(Exception):
    """Base class for errors raised while running an agent."""

    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AgentConfigurationError(AgentRuntimeError):
    """The run cannot start because of missing or invalid configuration."""


class AgentValidationError(AgentRuntimeError):
    """Input or model output failed validation."""


class AgentServiceError(AgentRuntimeError):
    """A downstream service failed."""

    retryable = True

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, details)


class McpToolError(AgentServiceError):
    """An MCP tool endpoint returned a non-2xx response or could not be reached."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.body = body
        details: dict[str, Any] = {"toolName": tool_name}
        if status_code is not None:
            details["statusCode"] = status_code
        if body:
            details["body"] = body
        super().__init__(message, status_code=status_code, details=details)
