"""Integration tests for AgentRunner.

Runs complete agent turns with a stubbed chat model, mocked tool endpoints and
a recording trace sink.
"""

from unittest.mock import patch

import httpx
import pytest
import respx
from fakes import TOOL_ENDPOINT, RecordingSink, ai_message, make_chat_model, tool_call

from agent_runtime.platform.agent.config import AgentRunRequest
from agent_runtime.platform.agent.errors import AgentConfigurationError, AgentValidationError
from agent_runtime.platform.agent.messages import AgentMessage, ConversationState
from agent_runtime.platform.agent.runner import AgentRunContext, AgentRunner
from agent_runtime.platform.agent.secrets import EnvSecretsResolver


@pytest.fixture
def runner_for(llm_factory, provider_defaults):
    def build(chat_model) -> AgentRunner:
        return AgentRunner(provider_defaults=provider_defaults, llm_factory=llm_factory(chat_model))

    return build


@pytest.fixture
def context(sink: RecordingSink) -> AgentRunContext:
    return AgentRunContext(run_id="run-1", workflow_run_id="wf-1", node_ref="agent-node", trace_sink=sink)


def request(**overrides) -> AgentRunRequest:
    payload = {"userInput": "Who created Python?", "modelApiKey": "sk-test", **overrides}
    return AgentRunRequest.model_validate(payload)


class TestToolLoopRun:
    """Tests for runs answered by the tool loop."""

    async def test_plain_answer(self, runner_for, context, sink: RecordingSink):
        """A run without tools answers and updates memory."""
        runner = runner_for(make_chat_model(ai_message("Guido van Rossum.")))

        output = await runner.run(request(systemPrompt="Be brief."), context)

        assert output.response_text == "Guido van Rossum."
        assert output.agent_run_id == "run-1"
        assert output.structured_output is None
        assert [m.role for m in output.conversation_state.messages] == ["system", "user", "assistant"]
        assert output.conversation_state.messages[-1].content == "Guido van Rossum."
        assert len(output.reasoning_trace) == 1
        assert output.usage.total_tokens == 15  # type: ignore[union-attr]

    async def test_trace_event_sequence(self, runner_for, context, sink: RecordingSink):
        """Events frame the run from message-start to finish."""
        runner = runner_for(make_chat_model(ai_message("Answer.")))

        await runner.run(request(), context)

        assert sink.types == [
            "message-start",
            "data-reasoning-step",
            "data-text-start",
            "text-delta",
            "data-text-end",
            "finish",
        ]
        assert [event.sequence for event in sink.events] == [1, 2, 3, 4, 5, 6]
        assert {event.workflow_run_id for event in sink.events} == {"wf-1"}
        assert sink.events[3].part["delta"] == "Answer."
        assert sink.events[-1].part["finishReason"] == "stop"

    @respx.mock
    async def test_with_tools(self, runner_for, context, sink: RecordingSink):
        """Tool results land in memory and in the invocation log."""
        respx.post(TOOL_ENDPOINT).mock(return_value=httpx.Response(200, json={"fact": "Guido"}))
        runner = runner_for(
            make_chat_model(
                ai_message(tool_calls=[tool_call("lookup_fact", {"topic": "python"}, "call_1")]),
                ai_message("Guido created Python."),
            )
        )
        state = ConversationState(
            session_id="session-1",
            messages=[AgentMessage(role="user", content="hi"), AgentMessage(role="assistant", content="hello")],
        )

        output = await runner.run(
            request(
                conversationState=state.model_dump(by_alias=True),
                mcpTools=[{"id": "lookup_fact", "endpoint": TOOL_ENDPOINT}],
            ),
            context,
        )

        assert output.conversation_state.session_id == "session-1"
        roles = [m.role for m in output.conversation_state.messages]
        assert roles == ["user", "assistant", "user", "tool", "assistant"]
        assert [entry.id for entry in output.tool_invocations] == ["session-1-call_1"]
        assert output.conversation_state.tool_invocations == output.tool_invocations
        assert "tool-input-available" in sink.types
        assert respx.calls[0].request.headers["x-mcp-session"] == "session-1"

    @respx.mock
    async def test_duplicate_tool_ids_keep_first(self, runner_for, context, caplog):
        """The first definition of a repeated tool id is used; later ones are skipped."""
        first = respx.post(TOOL_ENDPOINT).mock(return_value=httpx.Response(200, json={"fact": "Guido"}))
        second = respx.post("http://other.test/mcp").mock(return_value=httpx.Response(200, json={}))
        runner = runner_for(
            make_chat_model(
                ai_message(tool_calls=[tool_call("lookup_fact", {"topic": "python"}, "call_1")]),
                ai_message("Guido created Python."),
            )
        )

        output = await runner.run(
            request(
                mcpTools=[
                    {"id": "lookup_fact", "endpoint": TOOL_ENDPOINT},
                    {"id": "lookup_fact", "endpoint": "http://other.test/mcp"},
                ]
            ),
            context,
        )

        assert output.response_text == "Guido created Python."
        assert first.call_count == 1
        assert not second.called
        assert "Skipping duplicate MCP tool id 'lookup_fact'" in caplog.text

    async def test_memory_is_trimmed(self, runner_for, context):
        """Returned memory respects memorySize."""
        runner = runner_for(make_chat_model(ai_message("a3")))
        history = [
            {"role": "user", "content": "u1"},
            {"role": "assistant", "content": "a1"},
            {"role": "user", "content": "u2"},
            {"role": "assistant", "content": "a2"},
        ]

        output = await runner.run(
            request(
                userInput="u3",
                memorySize=2,
                systemPrompt="sys",
                conversationState={"sessionId": "s", "messages": history},
            ),
            context,
        )

        contents = [m.content for m in output.conversation_state.messages]
        assert contents == ["sys", "u3", "a3"]

    async def test_session_id_generated(self, runner_for, context):
        runner = runner_for(make_chat_model(ai_message("hi")))
        output = await runner.run(request(), context)
        assert output.conversation_state.session_id


class TestStructuredRun:
    """Tests for runs answered with structured output."""

    async def test_structured_output_skips_tools(self, runner_for, context, sink: RecordingSink):
        """Structured output never runs the tool loop."""
        chat_model = make_chat_model(ai_message('```json\n{"x": 1}\n```'))
        chat_model.with_structured_output.side_effect = RuntimeError("unsupported")

        output = await runner_for(chat_model).run(
            request(
                structuredOutputEnabled=True,
                jsonExample='{"x": 0}',
                autoFixFormat=True,
                mcpTools=[{"id": "lookup_fact", "endpoint": TOOL_ENDPOINT}],
            ),
            context,
        )

        assert output.structured_output == {"x": 1}
        assert output.response_text == '{\n  "x": 1\n}'
        assert output.reasoning_trace == []
        assert output.tool_invocations == []
        assert output.conversation_state.messages[-1].content == output.response_text
        chat_model.bind_tools.assert_not_called()
        assert "tool-input-available" not in sink.types
        assert sink.types[0] == "message-start"
        assert sink.types[-1] == "finish"

    async def test_structured_failure_without_auto_fix(self, runner_for, context, sink: RecordingSink):
        """Without auto-fix the primary error propagates and no finish is emitted."""
        chat_model = make_chat_model(ai_message("unused"))
        chat_model.with_structured_output.side_effect = RuntimeError("unsupported")

        with pytest.raises(RuntimeError, match="unsupported") as exc_info:
            await runner_for(chat_model).run(
                request(structuredOutputEnabled=True, jsonExample='{"x": 0}'), context
            )

        chat_model.ainvoke.assert_not_called()
        assert "finish" not in sink.types
        assert any("structured_output" in note for note in exc_info.value.__notes__)


class TestRunFailures:
    """Tests for configuration and validation failures."""

    async def test_empty_input(self, runner_for, context, sink: RecordingSink):
        runner = runner_for(make_chat_model())

        with pytest.raises(AgentValidationError, match="AI Agent requires a non-empty user input."):
            await runner.run(request(userInput="   "), context)

        assert sink.events == []

    async def test_missing_api_key(self, runner_for, context):
        runner = runner_for(make_chat_model())

        with pytest.raises(AgentConfigurationError, match="API key is not configured") as exc_info:
            await runner.run(AgentRunRequest(user_input="hi"), context)

        assert any("model_resolution" in note for note in exc_info.value.__notes__)

    async def test_mode_selection_failure_is_staged(self, runner_for, context):
        """Failures while building tool definitions carry the tool_registration stage."""
        runner = runner_for(make_chat_model())

        with (
            patch("agent_runtime.platform.agent.runner.select_mode", side_effect=ValueError("bad tool")),
            pytest.raises(ValueError, match="bad tool") as exc_info,
        ):
            await runner.run(request(), context)

        assert any("tool_registration" in note for note in exc_info.value.__notes__)

    async def test_secret_resolution(self, runner_for, sink: RecordingSink):
        """chatModel.apiKeySecretId is resolved through the context's secrets."""
        runner = runner_for(make_chat_model(ai_message("ok")))
        context = AgentRunContext(
            trace_sink=sink,
            secrets=EnvSecretsResolver(environ={"AGENT_SECRET_OPENAI_PROD": "sk-secret"}),
        )

        output = await runner.run(
            AgentRunRequest.model_validate(
                {"userInput": "hi", "chatModel": {"apiKeySecretId": "openai-prod"}}
            ),
            context,
        )

        assert output.response_text == "ok"
