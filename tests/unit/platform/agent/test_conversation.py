"""Unit tests for conversation memory management."""

import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from agent_runtime.platform.agent.conversation import (
    ConversationTurn,
    ensure_system_message,
    stringify_content,
    to_model_messages,
    trim_conversation,
)
from agent_runtime.platform.agent.messages import (
    AgentMessage,
    ConversationState,
    ToolInvocationEntry,
)


def sys(text: str = "You are helpful.") -> AgentMessage:
    return AgentMessage(role="system", content=text)


def user(text: str) -> AgentMessage:
    return AgentMessage(role="user", content=text)


def assistant(text: str) -> AgentMessage:
    return AgentMessage(role="assistant", content=text)


class TestEnsureSystemMessage:
    """Tests for ensure_system_message."""

    def test_blank_prompt_leaves_history_unchanged(self):
        """A blank system prompt is ignored."""
        history = [user("hi")]
        assert ensure_system_message(history, "   ") == history
        assert ensure_system_message(history, None) == history

    def test_prepends_to_empty_history(self):
        """Empty history gets the system message."""
        assert ensure_system_message([], "Be brief.") == [sys("Be brief.")]

    def test_replaces_stale_system_message(self):
        """An existing leading system message is replaced."""
        result = ensure_system_message([sys("old"), user("hi")], "new")
        assert result == [sys("new"), user("hi")]

    def test_prepends_when_first_is_not_system(self):
        """A system message is prepended ahead of user messages."""
        result = ensure_system_message([user("hi")], "prompt")
        assert result == [sys("prompt"), user("hi")]

    def test_prompt_is_trimmed(self):
        """The stored prompt has surrounding whitespace removed."""
        assert ensure_system_message([], "  prompt \n")[0].content == "prompt"

    def test_idempotent(self):
        """Applying it to its own output is a fixed point."""
        once = ensure_system_message([user("a"), assistant("b")], "prompt")
        assert ensure_system_message(once, "prompt") == once


class TestTrimConversation:
    """Tests for trim_conversation."""

    def test_keeps_system_and_most_recent(self):
        """memory_size=2 keeps the system message and the last two messages."""
        history = [sys(), user("u1"), assistant("a1"), user("u2"), assistant("a2")]
        assert trim_conversation(history, 2) == [sys(), user("u2"), assistant("a2")]

    def test_short_history_unchanged(self):
        """Histories within the limit are returned as-is."""
        history = [user("u1"), assistant("a1")]
        assert trim_conversation(history, 4) == history

    def test_without_system_message(self):
        """Only the most recent messages are kept when there is no system message."""
        history = [user("u1"), assistant("a1"), user("u2")]
        assert trim_conversation(history, 2) == [assistant("a1"), user("u2")]

    def test_first_system_message_moves_to_front(self):
        """The first system message found anywhere leads the result."""
        history = [user("u1"), sys("late"), assistant("a1"), user("u2")]
        assert trim_conversation(history, 2) == [sys("late"), assistant("a1"), user("u2")]

    @pytest.mark.parametrize("memory_size", [2, 3, 5, 8])
    def test_bounded_with_single_system_message(self, memory_size: int):
        """At most memory_size non-system messages and one system message remain."""
        history = [sys("a"), user("u1"), sys("b"), assistant("a1")] + [
            user(f"u{i}") for i in range(10)
        ]
        trimmed = trim_conversation(history, memory_size)

        system_count = sum(1 for m in trimmed if m.role == "system")
        assert system_count <= 1
        assert len(trimmed) - system_count <= memory_size


class TestToModelMessages:
    """Tests for converting memory into LangChain messages."""

    def test_converts_roles(self):
        """System, user and assistant map to their LangChain types."""
        messages = to_model_messages([sys("s"), user("u"), assistant("a")])
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage]
        assert [m.content for m in messages] == ["s", "u", "a"]

    def test_tool_message_replayed_as_json(self):
        """Tool envelopes are replayed as assistant JSON."""
        envelope = {"toolCallId": "c1", "toolName": "lookup", "args": {}, "result": {"ok": True}}
        [message] = to_model_messages([AgentMessage(role="tool", content=envelope)])
        assert isinstance(message, AIMessage)
        assert json.loads(message.content) == envelope  # type: ignore[arg-type]

    def test_stringify_content(self):
        """Non-string content is JSON-encoded."""
        assert stringify_content("text") == "text"
        assert stringify_content({"a": 1}) == '{"a": 1}'


class TestConversationTurn:
    """Tests for the per-turn memory lifecycle."""

    def test_start_generates_session_id(self):
        """A new conversation gets a generated session id."""
        turn = ConversationTurn.start(None, "", "hello", memory_size=8)
        assert turn.session_id
        assert turn.messages == [user("hello")]

    def test_start_keeps_existing_session(self):
        """An existing session id is reused."""
        state = ConversationState(session_id="sess-1", messages=[user("u1"), assistant("a1")])
        turn = ConversationTurn.start(state, "prompt", "u2", memory_size=8)
        assert turn.session_id == "sess-1"
        assert turn.messages == [sys("prompt"), user("u1"), assistant("a1"), user("u2")]

    def test_start_trims_history(self):
        """The user message is appended to trimmed history."""
        state = ConversationState(
            session_id="sess-1",
            messages=[sys(), user("u1"), assistant("a1"), user("u2"), assistant("a2")],
        )
        turn = ConversationTurn.start(state, "You are helpful.", "u3", memory_size=2)
        assert turn.messages == [sys(), assistant("a2"), user("u3")]

    def test_complete_appends_tools_and_answer(self):
        """Tool messages and the answer are appended in order."""
        turn = ConversationTurn.start(None, "", "q", memory_size=8)
        tool = AgentMessage(role="tool", content={"toolCallId": "c1"})
        state = turn.complete([tool], "answer")

        assert [m.role for m in state.messages] == ["user", "tool", "assistant"]
        assert state.messages[-1].content == "answer"

    def test_complete_carries_prior_invocations(self):
        """Earlier invocations are kept ahead of the new ones."""
        prior = ToolInvocationEntry(id="s-1", tool_name="a", timestamp="2024-01-01T00:00:00+00:00")
        new = ToolInvocationEntry(id="s-2", tool_name="b", timestamp="2024-01-02T00:00:00+00:00")
        state = ConversationState(session_id="s", tool_invocations=[prior])

        turn = ConversationTurn.start(state, "", "q", memory_size=8)
        result = turn.complete([], "answer", [new])

        assert [entry.id for entry in result.tool_invocations] == ["s-1", "s-2"]

    def test_complete_respects_memory_size(self):
        """The final state stays within memory_size."""
        turn = ConversationTurn.start(None, "prompt", "q", memory_size=2)
        tools = [AgentMessage(role="tool", content={"n": i}) for i in range(3)]
        state = turn.complete(tools, "answer")

        assert state.messages[0] == sys("prompt")
        assert len(state.messages) == 3
        assert state.messages[-1] == assistant("answer")
