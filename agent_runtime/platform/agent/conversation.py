"""Conversation memory management.

Produces the message list sent to the model and the updated state handed back
to the caller. Memory is bounded by ``memory_size`` non-system messages plus at
most one leading system message. Nothing here raises.
"""

import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from agent_runtime.platform.agent.messages import (
    AgentMessage,
    ConversationState,
    ToolInvocationEntry,
)

logger = logging.getLogger(__name__)


def stringify_content(content: Any) -> str:
    """Return content as text, JSON-encoding anything that is not a string."""
    if isinstance(content, str):
        return content
    try:
        return json.dumps(content, default=str)
    except (TypeError, ValueError):
        return str(content)


def ensure_system_message(
    history: Sequence[AgentMessage], system_prompt: str | None
) -> list[AgentMessage]:
    """Guarantee the history starts with a system message holding ``system_prompt``.

    Args:
        history: Prior conversation messages
        system_prompt: System prompt; blank leaves the history unchanged

    Returns:
        New message list whose first element is the (trimmed) system prompt
    """
    prompt = (system_prompt or "").strip()
    if not prompt:
        return list(history)

    system = AgentMessage(role="system", content=prompt)
    if history and history[0].role == "system":
        return [system, *history[1:]]
    return [system, *history]


def trim_conversation(history: Sequence[AgentMessage], memory_size: int) -> list[AgentMessage]:
    """Cap the history at ``memory_size`` non-system messages.

    The first system message (if any) is moved to the front, followed by the
    most recent non-system messages in their original order. Additional system
    messages are dropped.

    Args:
        history: Messages to trim
        memory_size: Number of non-system messages to keep

    Returns:
        The trimmed message list
    """
    if len(history) <= memory_size:
        return list(history)

    system = [m for m in history if m.role == "system"][:1]
    rest = [m for m in history if m.role != "system"]
    recent = rest[-memory_size:] if memory_size > 0 else []
    return system + recent


def to_model_messages(history: Sequence[AgentMessage]) -> list[BaseMessage]:
    """Convert conversation memory into LangChain messages.

    Tool-role entries from earlier turns are replayed as assistant messages
    holding the JSON envelope, since their originating tool call is no longer
    part of the prompt.
    """
    converted: list[BaseMessage] = []
    for message in history:
        text = stringify_content(message.content)
        match message.role:
            case "system":
                converted.append(SystemMessage(content=text))
            case "user":
                converted.append(HumanMessage(content=text))
            case "assistant" | "tool":
                converted.append(AIMessage(content=text))
    return converted


class ConversationTurn:
    """Applies the memory rules of a single turn.

    Usage:
        turn = ConversationTurn.start(state, system_prompt, user_input, memory_size=8)
        messages = to_model_messages(turn.messages)
        ...
        new_state = turn.complete(tool_messages, response_text, invocations)
    """

    def __init__(
        self,
        session_id: str,
        messages: list[AgentMessage],
        memory_size: int,
        prior_invocations: list[ToolInvocationEntry],
    ) -> None:
        self.session_id = session_id
        self.messages = messages
        self.memory_size = memory_size
        self._prior_invocations = prior_invocations

    @classmethod
    def start(
        cls,
        state: ConversationState | None,
        system_prompt: str | None,
        user_input: str,
        memory_size: int,
    ) -> "ConversationTurn":
        """Begin a turn: ensure system prompt, trim, append the user message, trim."""
        session_id = state.session_id if state and state.session_id else str(uuid.uuid4())
        history = list(state.messages) if state else []
        prior_invocations = list(state.tool_invocations) if state else []

        history = ensure_system_message(history, system_prompt)
        history = trim_conversation(history, memory_size)
        history = [*history, AgentMessage(role="user", content=user_input)]
        history = trim_conversation(history, memory_size)

        logger.debug(f"Session {session_id}: {len(history)} messages in memory")
        return cls(session_id, history, memory_size, prior_invocations)

    def complete(
        self,
        tool_messages: Sequence[AgentMessage],
        assistant_text: str,
        invocations: Sequence[ToolInvocationEntry] = (),
    ) -> ConversationState:
        """Finish a turn: append tool results, trim, append the answer, trim.

        Args:
            tool_messages: Tool-role messages produced during the turn
            assistant_text: Final assistant response
            invocations: Tool invocations recorded during the turn

        Returns:
            Conversation state to return to the caller
        """
        history = trim_conversation([*self.messages, *tool_messages], self.memory_size)
        history = [*history, AgentMessage(role="assistant", content=assistant_text)]
        history = trim_conversation(history, self.memory_size)
        self.messages = history

        return ConversationState(
            session_id=self.session_id,
            messages=history,
            tool_invocations=[*self._prior_invocations, *invocations],
        )
