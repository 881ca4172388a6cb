"""Agent runtime module.

This module provides the building blocks of a single agent run:
- Conversation memory and trimming
- MCP tool registry and HTTP client
- Stream recorder for agent trace events
- Tool-loop execution engine built on LangGraph
- Structured-output resolver
- Runner tying them together
"""

from agent_runtime.platform.agent.config import (
    AgentRunRequest,
    ChatModelSelection,
    ModelProvider,
    ResolvedChatModel,
    SchemaType,
    StructuredOutputConfig,
    ToolLoopConfig,
)
from agent_runtime.platform.agent.conversation import ConversationTurn, trim_conversation
from agent_runtime.platform.agent.errors import (
    AgentConfigurationError,
    AgentRuntimeError,
    AgentServiceError,
    AgentValidationError,
    McpToolError,
)
from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.loop import ToolLoopEngine, ToolLoopResult
from agent_runtime.platform.agent.mcp import McpHttpClient, McpToolArgument, McpToolDefinition
from agent_runtime.platform.agent.messages import (
    AgentMessage,
    AgentRunOutput,
    ConversationState,
    ReasoningStep,
    TokenUsage,
    ToolInvocationEntry,
)
from agent_runtime.platform.agent.runner import AgentRunContext, AgentRunner, select_mode
from agent_runtime.platform.agent.stream import AgentStreamRecorder, AgentTraceEvent, TraceSink
from agent_runtime.platform.agent.structured import StructuredOutputResolver
from agent_runtime.platform.agent.tool_registry import McpToolRegistry

__all__ = [
    # Runner
    "AgentRunContext",
    "AgentRunner",
    "select_mode",
    # Configuration
    "AgentRunRequest",
    "ChatModelSelection",
    "ModelProvider",
    "ResolvedChatModel",
    "SchemaType",
    "StructuredOutputConfig",
    "ToolLoopConfig",
    # Conversation
    "AgentMessage",
    "ConversationState",
    "ConversationTurn",
    "trim_conversation",
    # Results
    "AgentRunOutput",
    "ReasoningStep",
    "TokenUsage",
    "ToolInvocationEntry",
    # Errors
    "AgentConfigurationError",
    "AgentRuntimeError",
    "AgentServiceError",
    "AgentValidationError",
    "McpToolError",
    # Components
    "AgentStreamRecorder",
    "AgentTraceEvent",
    "LlmClient",
    "McpHttpClient",
    "McpToolArgument",
    "McpToolDefinition",
    "McpToolRegistry",
    "StructuredOutputResolver",
    "ToolLoopEngine",
    "ToolLoopResult",
    "TraceSink",
]
