"""Unit tests for run request parsing and mode selection."""

import pytest
from pydantic import ValidationError

from agent_runtime.platform.agent.config import (
    AgentRunRequest,
    ModelProvider,
    SchemaType,
    ToolLoopConfig,
)
from agent_runtime.platform.agent.runner import StructuredOutputMode, ToolLoopMode, select_mode


class TestAgentRunRequest:
    """Tests for AgentRunRequest validation."""

    def test_defaults(self):
        request = AgentRunRequest(user_input="hi")
        assert request.chat_model.provider is ModelProvider.OPENAI
        assert request.temperature == 0.7
        assert request.max_tokens == 1024
        assert request.memory_size == 8
        assert request.step_limit == 4
        assert request.mcp_tools == []
        assert request.structured_output is None

    def test_camel_case_payload(self):
        """Requests arrive with camelCase keys."""
        request = AgentRunRequest.model_validate(
            {
                "userInput": "hi",
                "chatModel": {"provider": "openrouter", "modelId": "anthropic/claude"},
                "memorySize": 4,
                "stepLimit": 2,
                "mcpTools": [{"id": "lookup", "endpoint": "http://tools.test"}],
                "conversationState": {"sessionId": "s-1", "messages": [{"role": "user", "content": "x"}]},
            }
        )
        assert request.chat_model.model_id == "anthropic/claude"
        assert request.memory_size == 4
        assert request.mcp_tools[0].id == "lookup"
        assert request.conversation_state.session_id == "s-1"  # type: ignore[union-attr]

    @pytest.mark.parametrize(
        "field,value",
        [
            ("temperature", 2.5),
            ("max_tokens", 10),
            ("max_tokens", 9000),
            ("memory_size", 1),
            ("memory_size", 51),
            ("step_limit", 0),
            ("step_limit", 13),
        ],
    )
    def test_bounds(self, field: str, value):
        with pytest.raises(ValidationError):
            AgentRunRequest(user_input="hi", **{field: value})

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            AgentRunRequest.model_validate({"userInput": "hi", "chatModel": {"provider": "acme"}})


class TestSelectMode:
    """Tests for the structured-output / tool-loop dispatch."""

    def test_tool_loop_by_default(self):
        request = AgentRunRequest.model_validate(
            {
                "userInput": "hi",
                "stepLimit": 3,
                "mcpTools": [{"id": "lookup", "endpoint": "http://tools.test"}],
            }
        )
        mode = select_mode(request)

        assert isinstance(mode, ToolLoopMode)
        assert mode.config == ToolLoopConfig(temperature=0.7, max_tokens=1024, step_limit=3)
        assert [tool.id for tool in mode.tools] == ["lookup"]

    def test_http_servers_expand_into_tools(self):
        """Server tools come first, then the individual tools; duplicate ids are kept."""
        request = AgentRunRequest.model_validate(
            {
                "userInput": "hi",
                "mcpServers": [
                    {
                        "endpoint": "http://server.test/mcp",
                        "headersJson": '{"Authorization": "Bearer t"}',
                        "tools": [{"id": "search", "title": "Search"}, {"id": "lookup", "title": "Lookup"}],
                    }
                ],
                "mcpTools": [{"id": "lookup", "endpoint": "http://tools.test"}],
            }
        )
        mode = select_mode(request)

        assert isinstance(mode, ToolLoopMode)
        assert [(tool.id, tool.endpoint) for tool in mode.tools] == [
            ("search", "http://server.test/mcp"),
            ("lookup", "http://server.test/mcp"),
            ("lookup", "http://tools.test"),
        ]
        assert mode.tools[0].headers == {"Authorization": "Bearer t"}

    def test_structured_output(self):
        """Enabling structured output selects it exclusively."""
        request = AgentRunRequest.model_validate(
            {
                "userInput": "hi",
                "structuredOutputEnabled": True,
                "schemaType": "json-schema",
                "jsonSchema": '{"type": "object"}',
                "autoFixFormat": True,
                "mcpTools": [{"id": "lookup", "endpoint": "http://tools.test"}],
            }
        )
        mode = select_mode(request)

        assert isinstance(mode, StructuredOutputMode)
        assert mode.config.schema_type is SchemaType.JSON_SCHEMA
        assert mode.config.auto_fix is True

    def test_recursion_limit(self):
        """Each step allows a reasoner and a tools pass."""
        assert ToolLoopConfig(step_limit=4).recursion_limit == 10
