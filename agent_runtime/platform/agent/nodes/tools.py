"""Tool node executing MCP tool calls in call order."""

import logging
from datetime import UTC, datetime

from langchain_core.messages import AIMessage, ToolMessage

from agent_runtime.platform.agent.conversation import stringify_content
from agent_runtime.platform.agent.messages import (
    AgentMessage,
    ReasoningAction,
    ReasoningObservation,
    ReasoningStep,
    ToolInvocationEntry,
    ToolMessageContent,
)
from agent_runtime.platform.agent.state import ToolLoopState
from agent_runtime.platform.agent.tool_registry import McpToolRegistry

from .base import Node, finish_reason, message_text

logger = logging.getLogger(__name__)


class ToolsNode(Node):
    """Node that runs the tool calls of the latest model response.

    Calls run sequentially through the registry, so every call is traced and
    the first failure aborts the loop.
    """

    def __init__(self, registry: McpToolRegistry):
        """Initialize the tools node.

        Args:
            registry: Registry holding the tools of this run
        """
        self.registry = registry

    async def __call__(self, state: ToolLoopState) -> ToolLoopState:
        """Execute pending tool calls and complete the reasoning step.

        Args:
            state: Current loop state; its last message carries the tool calls

        Returns:
            State update with tool messages, invocations and the reasoning step
        """
        response: AIMessage = state["messages"][-1]  # type: ignore[assignment]
        step = state.get("reasoning_steps", 0)
        session_id = self.registry.session_id

        actions: list[ReasoningAction] = []
        observations: list[ReasoningObservation] = []
        tool_messages: list[ToolMessage] = []
        invocations: list[ToolInvocationEntry] = []
        history: list[AgentMessage] = []

        for tool_call in response.tool_calls:
            tool_call_id = tool_call.get("id") or f"{session_id}-tool-{step}"
            tool_name = tool_call["name"]
            args = tool_call.get("args") or {}
            actions.append(ReasoningAction(tool_call_id=tool_call_id, tool_name=tool_name, args=args))

            result = await self.registry.execute(tool_name, args, tool_call_id=tool_call_id)
            logger.debug(f"Tool '{tool_name}' ({tool_call_id}) completed")

            observations.append(
                ReasoningObservation(
                    tool_call_id=tool_call_id, tool_name=tool_name, args=args, result=result
                )
            )
            tool_messages.append(
                ToolMessage(
                    content=stringify_content(result),
                    tool_call_id=tool_call_id,
                    name=tool_name,
                )
            )
            invocations.append(self._invocation_entry(session_id, tool_call_id, tool_name, args, result))
            history.append(
                AgentMessage(
                    role="tool",
                    content=ToolMessageContent(
                        tool_call_id=tool_call_id, tool_name=tool_name, args=args, result=result
                    ).model_dump(by_alias=True),
                )
            )

        reasoning_step = ReasoningStep(
            step=step,
            thought=message_text(response),
            finish_reason=finish_reason(response),
            actions=actions,
            observations=observations,
        )
        return {  # type: ignore
            "messages": tool_messages,
            "reasoning_trace": [reasoning_step],
            "tool_invocations": invocations,
            "tool_messages": history,
        }

    def _invocation_entry(
        self, session_id: str, tool_call_id: str, tool_name: str, args: dict, result
    ) -> ToolInvocationEntry:
        tool = self.registry.get(tool_name)
        metadata = None
        if tool is not None:
            metadata = {
                "toolId": tool.definition.id,
                "endpoint": tool.client.endpoint,
                "source": tool.definition.metadata.source if tool.definition.metadata else None,
            }
        return ToolInvocationEntry(
            id=f"{session_id}-{tool_call_id}",
            tool_name=tool_name,
            args=args,
            result=result,
            timestamp=datetime.now(UTC).isoformat(),
            metadata=metadata,
        )
