"""Agent runtime platform.

This module provides the infrastructure around agent runs:
- Agent runner, tool loop and structured output
- MCP tool registry and HTTP client
- FastAPI server configuration
- Observability utilities
"""

from agent_runtime.platform.agent import (
    AgentRunContext,
    AgentRunner,
    AgentRunOutput,
    AgentRunRequest,
    AgentRuntimeError,
    ConversationState,
    McpToolDefinition,
)
from agent_runtime.platform.settings import Settings

__all__ = [
    "AgentRunContext",
    "AgentRunner",
    "AgentRunOutput",
    "AgentRunRequest",
    "AgentRuntimeError",
    "ConversationState",
    "McpToolDefinition",
    "Settings",
]
