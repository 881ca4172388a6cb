"""LangGraph state definition for the tool loop."""

import operator
from typing import Annotated, TypedDict

from langchain_core.messages import AnyMessage
from langgraph.graph.message import add_messages

from agent_runtime.platform.agent.messages import (
    AgentMessage,
    ReasoningStep,
    ToolInvocationEntry,
)


def add_tokens(existing: dict[str, int], new: dict[str, int]) -> dict[str, int]:
    """Reducer that accumulates token counts by model.

    Args:
        existing: Current token counts by model
        new: New token counts to add

    Returns:
        Merged dict with accumulated counts per model
    """
    result = dict(existing or {})
    for model, tokens in (new or {}).items():
        result[model] = result.get(model, 0) + tokens
    return result


class ToolLoopState(TypedDict):
    """State carried through the reasoner/tools graph.

    Attributes:
        messages: Model-facing message history (deduplicated via add_messages)
        reasoning_steps: Number of completed model calls
        reasoning_trace: Completed reasoning steps, in completion order
        tool_invocations: Tool calls made during this run
        tool_messages: Tool-role conversation messages produced during this run
        input_tokens_by_model: Cumulative input tokens by model (auto-accumulated via reducer)
        output_tokens_by_model: Cumulative output tokens by model (auto-accumulated via reducer)
    """

    messages: Annotated[list[AnyMessage], add_messages]
    reasoning_steps: int
    reasoning_trace: Annotated[list[ReasoningStep], operator.add]
    tool_invocations: Annotated[list[ToolInvocationEntry], operator.add]
    tool_messages: Annotated[list[AgentMessage], operator.add]
    input_tokens_by_model: Annotated[dict[str, int], add_tokens]
    output_tokens_by_model: Annotated[dict[str, int], add_tokens]
