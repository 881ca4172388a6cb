"""Base protocol and helpers for tool-loop nodes."""

from typing import Any, Protocol, runtime_checkable

from langchain_core.messages import AIMessage

from agent_runtime.platform.agent.state import ToolLoopState


@runtime_checkable
class Node(Protocol):
    """Protocol for tool-loop graph nodes.

    Nodes are callable objects that return a partial ToolLoopState update.
    They are used as nodes in the LangGraph StateGraph.
    """

    async def __call__(self, state: ToolLoopState) -> ToolLoopState:
        """Process state and return the state update.

        Args:
            state: Current loop state

        Returns:
            Partial state update
        """
        ...


def message_text(message: AIMessage) -> str:
    """Plain text of a model response, joining text blocks of multi-part content."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def finish_reason(message: AIMessage) -> str:
    """Provider finish reason of a response, ``"other"`` when not reported."""
    metadata = message.response_metadata or {}
    reason = metadata.get("finish_reason") or metadata.get("stop_reason")
    return reason if isinstance(reason, str) and reason else "other"


def raw_response(message: AIMessage | None) -> dict[str, Any] | None:
    """Provider-facing fields of a model response."""
    if message is None:
        return None
    return {
        "id": message.id,
        "content": message.content,
        "toolCalls": [dict(call) for call in message.tool_calls],
        "responseMetadata": message.response_metadata,
        "usageMetadata": dict(message.usage_metadata) if message.usage_metadata else None,
    }
