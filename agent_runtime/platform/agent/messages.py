"""Framework-agnostic message, state and result types.

These types define the wire vocabulary of an agent run. They serialize with
camelCase keys (``model_dump(by_alias=True)``) and accept either camelCase or
snake_case on input.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

type MessageRole = Literal["system", "user", "assistant", "tool"]


class CamelModel(BaseModel):
    """Immutable model that round-trips through camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ToolMessageContent(CamelModel):
    """Envelope stored as the content of a tool-role message."""

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class AgentMessage(CamelModel):
    """A single conversation message.

    Attributes:
        role: Message role, fixed at creation
        content: Text for system/user/assistant; a ToolMessageContent-shaped
            envelope for tool messages
    """

    role: MessageRole
    content: Any = ""


class ToolInvocationEntry(CamelModel):
    """Record of one completed MCP tool call."""

    id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    timestamp: str
    metadata: dict[str, Any] | None = None


class ConversationState(CamelModel):
    """Conversation memory owned and persisted by the caller."""

    session_id: str
    messages: list[AgentMessage] = Field(default_factory=list)
    tool_invocations: list[ToolInvocationEntry] = Field(default_factory=list)


class ReasoningAction(CamelModel):
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ReasoningObservation(CamelModel):
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ReasoningStep(CamelModel):
    """Summary of one Think→Act→Observe iteration.

    Attributes:
        step: 1-based iteration index
        thought: Text the model produced during the step
        finish_reason: Provider finish reason, "other" when unknown
        actions: Tool calls requested by the model
        observations: Results of those tool calls, in call order
    """

    step: int
    thought: str = ""
    finish_reason: str = "other"
    actions: list[ReasoningAction] = Field(default_factory=list)
    observations: list[ReasoningObservation] = Field(default_factory=list)


class TokenUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class AgentRunOutput(CamelModel):
    """Result of a completed agent run.

    Attributes:
        response_text: Final assistant text (pretty-printed JSON in structured mode)
        structured_output: Parsed object when structured output was requested
        conversation_state: Updated conversation memory to hand back next turn
        tool_invocations: Tool calls made during this run only
        reasoning_trace: Every reasoning step, in completion order
        usage: Summed token usage, None when the provider reported nothing
        raw_response: Provider response metadata of the final completion
        agent_run_id: Identifier correlating every trace event of the run
    """

    response_text: str
    structured_output: dict[str, Any] | list[Any] | None = None
    conversation_state: ConversationState
    tool_invocations: list[ToolInvocationEntry] = Field(default_factory=list)
    reasoning_trace: list[ReasoningStep] = Field(default_factory=list)
    usage: TokenUsage | None = None
    raw_response: Any = None
    agent_run_id: str
