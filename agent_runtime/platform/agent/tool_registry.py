"""Registry that turns MCP tool definitions into model-callable tools.

Each definition becomes a RegisteredTool: a collision-free name, a pydantic
argument model built from the declared arguments, an HTTP client bound to the
definition's endpoint, and a LangChain StructuredTool used for model binding.

Usage:
    registry = McpToolRegistry(session_id, recorder)
    registry.register(definitions)
    llm_with_tools = llm.bind_tools(registry.langchain_tools)
    result = await registry.execute("lookup_fact", {"topic": "x"}, tool_call_id="call_1")
"""

import keyword
import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from time import monotonic
from typing import Any, Literal

import httpx
from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from agent_runtime.platform.agent.errors import AgentValidationError
from agent_runtime.platform.agent.mcp import McpHttpClient, McpToolArgument, McpToolDefinition
from agent_runtime.platform.agent.metrics import ToolMetricsLabels, record_tool_call
from agent_runtime.platform.agent.stream import AgentStreamRecorder

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_-]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def sanitize_tool_name(candidate: str | None, index: int) -> str:
    """Normalize a tool name to ``[a-z0-9_-]``.

    Args:
        candidate: Preferred name
        index: Zero-based position of the definition, used for the fallback name

    Returns:
        Sanitized name, or ``mcp_tool_<index + 1>`` if nothing usable remains
    """
    name = _INVALID_NAME_CHARS.sub("_", (candidate or "").strip().lower())
    name = _REPEATED_UNDERSCORES.sub("_", name).strip("_")
    return name or f"mcp_tool_{index + 1}"


def unique_tool_name(base: str, taken: set[str]) -> str:
    """Suffix ``base`` with ``_2``, ``_3``, ... until it is not in ``taken``."""
    if base not in taken:
        return base
    suffix = 2
    while f"{base}_{suffix}" in taken:
        suffix += 1
    return f"{base}_{suffix}"


def _argument_type(argument: McpToolArgument) -> Any:
    match argument.type:
        case "string":
            if argument.enum and all(isinstance(value, str) for value in argument.enum):
                return Literal[tuple(argument.enum)]
            return str
        case "number":
            return int | float
        case "boolean":
            return bool
        case _:
            return Any


def _field_name(name: str, index: int) -> str:
    if name.isidentifier() and not keyword.iskeyword(name) and not name.startswith(("_", "model_")):
        return name
    return f"arg_{index}"


def build_args_model(definition: McpToolDefinition, tool_name: str) -> type[BaseModel]:
    """Build a pydantic model validating a tool's declared arguments.

    Args:
        definition: Tool definition with an optional ``arguments`` list
        tool_name: Registered tool name, used to name the model

    Returns:
        Model class; a permissive model accepting any object when no
        arguments are declared
    """
    model_name = f"{tool_name.replace('-', '_').title().replace('_', '')}Args"
    if not definition.arguments:
        return create_model(model_name, __config__=ConfigDict(extra="allow"))

    fields: dict[str, Any] = {}
    for index, argument in enumerate(definition.arguments):
        field_type = _argument_type(argument)
        field_name = _field_name(argument.name, index)
        alias = argument.name if field_name != argument.name else None
        if argument.required:
            field = Field(alias=alias, description=argument.description)
        else:
            field_type = field_type | None
            field = Field(default=None, alias=alias, description=argument.description)
        fields[field_name] = (field_type, field)

    return create_model(model_name, __config__=ConfigDict(populate_by_name=True), **fields)


@dataclass(frozen=True)
class RegisteredTool:
    """A tool available to the model during one run.

    Attributes:
        name: Unique, sanitized name exposed to the model
        remote_name: Name sent to the endpoint (``metadata.toolName`` or ``id``)
        definition: Source definition
        args_model: Argument validator
        client: HTTP client bound to the definition's endpoint
        langchain_tool: StructuredTool wrapper for model binding
    """

    name: str
    remote_name: str
    definition: McpToolDefinition
    args_model: type[BaseModel]
    client: McpHttpClient
    langchain_tool: StructuredTool

    def validate_args(self, args: Any) -> dict[str, Any]:
        """Validate raw model arguments, returning the payload to send.

        Raises:
            AgentValidationError: If the arguments do not match the declaration
        """
        try:
            validated = self.args_model.model_validate(args or {})
        except ValidationError as e:
            raise AgentValidationError(
                f"Invalid arguments for MCP tool '{self.name}': {e}",
                details={"toolName": self.name, "errors": e.errors(include_url=False)},
            ) from e
        return validated.model_dump(by_alias=True, exclude_unset=True)


class McpToolRegistry:
    """Per-run registry of MCP tools."""

    def __init__(
        self,
        session_id: str,
        recorder: AgentStreamRecorder,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize an empty registry.

        Args:
            session_id: Conversation session forwarded to every endpoint
            recorder: Trace recorder for tool input/output/error events
            http_client: Shared HTTP client for tool calls
            timeout: Per-call timeout in seconds
        """
        self.session_id = session_id
        self.recorder = recorder
        self._http_client = http_client
        self._timeout = timeout
        self._tools: dict[str, RegisteredTool] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def tools(self) -> list[RegisteredTool]:
        return list(self._tools.values())

    @property
    def langchain_tools(self) -> list[StructuredTool]:
        return [tool.langchain_tool for tool in self._tools.values()]

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def register(self, definitions: Sequence[McpToolDefinition]) -> list[RegisteredTool]:
        """Register tool definitions in order.

        Duplicate ids keep the first definition. Definitions without an
        endpoint are skipped. Both cases are logged as warnings.

        Args:
            definitions: Tool definitions supplied by the caller

        Returns:
            Tools registered by this call
        """
        seen_ids = {tool.definition.id for tool in self._tools.values()}
        registered: list[RegisteredTool] = []
        for index, definition in enumerate(definitions):
            if definition.id in seen_ids:
                logger.warning(f"Skipping duplicate MCP tool id '{definition.id}'")
                continue
            seen_ids.add(definition.id)

            if not definition.endpoint.strip():
                logger.warning(f"Skipping MCP tool '{definition.id}': no endpoint configured")
                continue

            tool = self._build_tool(definition, index)
            self._tools[tool.name] = tool
            registered.append(tool)

        logger.info(f"Registered {len(registered)} MCP tool(s) for session {self.session_id}")
        return registered

    def _build_tool(self, definition: McpToolDefinition, index: int) -> RegisteredTool:
        metadata = definition.metadata
        remote_name = (metadata.tool_name if metadata else None) or definition.id
        name = unique_tool_name(sanitize_tool_name(remote_name, index), set(self._tools))
        args_model = build_args_model(definition, name)
        client = McpHttpClient(
            endpoint=definition.endpoint,
            session_id=self.session_id,
            headers=definition.headers,
            timeout=self._timeout,
            http_client=self._http_client,
        )

        async def invoke(**kwargs: Any) -> Any:
            return await self.execute(name, kwargs, tool_call_id=f"call_{uuid.uuid4().hex}")

        langchain_tool = StructuredTool(
            name=name,
            description=definition.description or definition.title or f"MCP tool: {remote_name}",
            args_schema=args_model,
            coroutine=invoke,
        )
        return RegisteredTool(
            name=name,
            remote_name=remote_name,
            definition=definition,
            args_model=args_model,
            client=client,
            langchain_tool=langchain_tool,
        )

    async def execute(self, tool_name: str, args: Any, tool_call_id: str) -> Any:
        """Invoke a registered tool, tracing its input and outcome.

        A ``tool-input-available`` event precedes the call; a
        ``tool-output-available`` or ``data-tool-error`` event follows it.

        Args:
            tool_name: Registered tool name
            args: Raw arguments proposed by the model
            tool_call_id: Identifier correlating the trace events

        Returns:
            The tool result

        Raises:
            AgentValidationError: For unknown tools or invalid arguments
            McpToolError: If the endpoint call fails
        """
        tool = self._tools.get(tool_name)
        source = tool.definition.metadata.source if tool and tool.definition.metadata else None
        labels = ToolMetricsLabels(tool_name, source or "")

        self.recorder.emit_tool_input(tool_call_id, tool_name, args)
        start_time = monotonic()
        try:
            if tool is None:
                raise AgentValidationError(
                    f"Unknown MCP tool '{tool_name}'", details={"toolName": tool_name}
                )
            payload = tool.validate_args(args)
            result = await tool.client.execute(tool.remote_name, payload)
        except Exception as e:
            record_tool_call(labels, duration=monotonic() - start_time, error=True)
            self.recorder.emit_tool_error(tool_call_id, tool_name, str(e))
            raise

        record_tool_call(labels, duration=monotonic() - start_time)
        self.recorder.emit_tool_output(tool_call_id, result)
        return result
