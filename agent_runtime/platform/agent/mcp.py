"""HTTP client for MCP tool endpoints.

Each tool definition points at an HTTP endpoint implementing the MCP tool
invocation contract: ``POST <endpoint>`` with a JSON body
``{sessionId, toolName, arguments}``. The response is JSON or plain text.

Usage:
    client = McpHttpClient("http://localhost:8000/mcp", session_id)
    result = await client.execute("lookup_fact", {"topic": "python"})
"""

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Literal

import httpx
from pydantic import Field

from agent_runtime.platform.agent.errors import McpToolError
from agent_runtime.platform.agent.messages import CamelModel
from agent_runtime.platform.constants import USER_AGENT

logger = logging.getLogger(__name__)

type McpArgumentType = Literal["string", "number", "boolean", "json"]


class McpToolArgument(CamelModel):
    """A declared tool argument.

    Attributes:
        name: Argument name as sent to the endpoint
        type: Primitive type of the argument value
        required: Whether the model must supply the argument
        enum: Allowed values
        description: Human-readable description shown to the model
    """

    name: str
    type: McpArgumentType = "string"
    required: bool = True
    enum: list[str | int | float | bool] | None = None
    description: str | None = None


class McpToolMetadata(CamelModel):
    tool_name: str | None = None
    source: str | None = None


class McpToolDefinition(CamelModel):
    """An externally declared tool, bound to an HTTP endpoint.

    Attributes:
        id: Unique identifier of the definition
        title: Display title
        description: Description shown to the model
        endpoint: URL implementing the invocation contract; blank definitions are skipped
        headers: Extra HTTP headers sent with every invocation
        arguments: Declared arguments; None accepts any object
        metadata: Preferred tool name and the source that produced the definition
    """

    id: str
    title: str | None = None
    description: str | None = None
    endpoint: str = ""
    headers: dict[str, str] | None = None
    arguments: list[McpToolArgument] | None = None
    metadata: McpToolMetadata | None = None


class McpHttpToolEntry(CamelModel):
    """One tool exposed by an HTTP tool server.

    Attributes:
        id: Unique identifier of the tool
        title: Display title
        description: Description shown to the model
        tool_name: Name sent to the endpoint; defaults to ``id``
        arguments: Declared arguments; None accepts any object
    """

    id: str = Field(min_length=1)
    title: str | None = None
    description: str | None = None
    tool_name: str | None = None
    arguments: list[McpToolArgument] | None = None


class McpHttpServer(CamelModel):
    """Several tools served by one HTTP endpoint.

    Attributes:
        endpoint: Endpoint shared by every tool
        headers_json: Optional JSON object of headers sent with every invocation
        tools: Tools exposed by the endpoint
        source: Identifier of the producer
    """

    endpoint: str
    headers_json: str | None = None
    tools: list[McpHttpToolEntry] = Field(default_factory=list)
    source: str | None = None

    def definitions(self) -> list[McpToolDefinition]:
        return http_tool_definitions(self.endpoint, self.tools, self.headers_json, self.source)


def sanitize_headers(headers: Mapping[str, Any] | None) -> dict[str, str]:
    """Strip keys and values, dropping blank or non-string entries."""
    sanitized: dict[str, str] = {}
    for key, value in (headers or {}).items():
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        key, value = key.strip(), value.strip()
        if key and value:
            sanitized[key] = value
    return sanitized


class McpHttpClient:
    """Client for a single MCP tool endpoint.

    Invocations are single attempts; failures surface as McpToolError.
    """

    def __init__(
        self,
        endpoint: str,
        session_id: str,
        headers: Mapping[str, str] | None = None,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the MCP client.

        Args:
            endpoint: URL of the tool endpoint; trailing slashes are removed
            session_id: Conversation session sent with every call
            headers: Optional per-tool HTTP headers (e.g. Authorization)
            timeout: Request timeout in seconds (default: 60.0)
            http_client: Shared client; a short-lived one is created per call if omitted
        """
        self.endpoint = endpoint.strip().rstrip("/")
        self.session_id = session_id
        self._headers = sanitize_headers(headers)
        self.timeout = timeout
        self._http_client = http_client

    def __repr__(self) -> str:
        """Obfuscate sensitive fields in string representation."""
        headers_repr = "<obfuscated>" if self._headers else "None"
        return (
            f"McpHttpClient(endpoint={self.endpoint!r}, "
            f"session_id={self.session_id!r}, "
            f"headers={headers_repr}, "
            f"timeout={self.timeout})"
        )

    def _request_headers(self, tool_name: str) -> dict[str, str]:
        protocol_headers = {
            "Content-Type": "application/json",
            "X-MCP-Session": self.session_id,
            "X-MCP-Tool": tool_name,
            "User-Agent": USER_AGENT,
        }
        # Protocol headers always win, regardless of case
        reserved = {key.lower() for key in protocol_headers}
        custom = {k: v for k, v in self._headers.items() if k.lower() not in reserved}
        return custom | protocol_headers

    async def execute(self, tool_name: str, arguments: Mapping[str, Any] | None = None) -> Any:
        """Invoke a tool and return the parsed response.

        Args:
            tool_name: Name of the tool to invoke
            arguments: Arguments to pass to the tool

        Returns:
            Decoded JSON for JSON responses, otherwise the raw response text

        Raises:
            McpToolError: On a non-2xx response or a transport failure
        """
        payload = {
            "sessionId": self.session_id,
            "toolName": tool_name,
            "arguments": dict(arguments or {}),
        }
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, tool_name, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, tool_name, payload)
        except httpx.HTTPError as e:
            raise McpToolError(tool_name, f"Failed to call tool '{tool_name}': {e}") from e

        if not response.is_success:
            body = response.text or "<no body>"
            raise McpToolError(
                tool_name,
                f"MCP request failed ({response.status_code} {response.reason_phrase}): {body}",
                status_code=response.status_code,
                body=body,
            )
        return self._parse_response(response)

    async def _post(
        self, client: httpx.AsyncClient, tool_name: str, payload: dict[str, Any]
    ) -> httpx.Response:
        return await client.post(
            self.endpoint,
            content=json.dumps(payload, default=str),
            headers=self._request_headers(tool_name),
            timeout=self.timeout,
        )

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        """Decode a tool response.

        Args:
            response: Successful HTTP response

        Returns:
            JSON-decoded value if the content type is JSON, otherwise the text
        """
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return response.json()
        return response.text


def http_tool_definitions(
    endpoint: str,
    tools: Iterable[McpHttpToolEntry],
    headers_json: str | None = None,
    source: str | None = None,
) -> list[McpToolDefinition]:
    """Describe several tools served by one HTTP endpoint.

    Args:
        endpoint: Endpoint shared by every tool
        tools: Tools exposed by the endpoint
        headers_json: Optional JSON object of headers; invalid JSON is ignored
        source: Identifier of the producer, stored in the definition metadata

    Returns:
        Tool definitions ready for registration
    """
    headers = _parse_headers_json(headers_json)
    definitions = []
    for entry in tools:
        definitions.append(
            McpToolDefinition(
                id=entry.id,
                title=entry.title,
                description=entry.description,
                endpoint=endpoint,
                headers=headers,
                arguments=entry.arguments,
                metadata=McpToolMetadata(
                    tool_name=entry.tool_name or entry.id,
                    source=source,
                ),
            )
        )
    logger.info(f"Prepared {len(definitions)} MCP tool(s) from {endpoint}")
    return definitions


def _parse_headers_json(headers_json: str | None) -> dict[str, str] | None:
    if not headers_json or not headers_json.strip():
        return None
    try:
        parsed = json.loads(headers_json)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse MCP headers JSON: {e}")
        return None
    if not isinstance(parsed, dict):
        return None
    return {key: value for key, value in parsed.items() if isinstance(value, str)}
