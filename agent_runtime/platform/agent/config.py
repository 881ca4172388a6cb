"""Configuration objects for agent runs.

Request-facing models are pydantic (validated at the HTTP boundary); resolved,
internal configuration is kept in frozen dataclasses.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import ConfigDict, Field

from agent_runtime.platform.agent.mcp import McpHttpServer, McpToolDefinition
from agent_runtime.platform.agent.messages import CamelModel, ConversationState


class ModelProvider(StrEnum):
    """Supported model-completion providers."""

    OPENAI = "openai"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class SchemaType(StrEnum):
    """Source format of a structured-output schema."""

    JSON_EXAMPLE = "json-example"
    JSON_SCHEMA = "json-schema"


DEFAULT_MODELS: dict[ModelProvider, str] = {
    ModelProvider.OPENAI: "gpt-4o-mini",
    ModelProvider.GEMINI: "gemini-2.5-flash",
    ModelProvider.OPENROUTER: "openrouter/auto",
}


class ChatModelSelection(CamelModel):
    """Caller's choice of provider and model.

    Attributes:
        provider: Model provider
        model_id: Model identifier; the provider default is used when blank
        api_key: Key embedded in the selection
        api_key_secret_id: Secret to look up when no key is given
        base_url: Explicit API base URL
        headers: Extra HTTP headers sent with every completion request
    """

    model_config = ConfigDict(protected_namespaces=())

    provider: ModelProvider = ModelProvider.OPENAI
    model_id: str | None = None
    api_key: str | None = None
    api_key_secret_id: str | None = None
    base_url: str | None = None
    headers: dict[str, str] | None = None


class AgentRunRequest(CamelModel):
    """Input of a single agent run."""

    model_config = ConfigDict(protected_namespaces=())

    user_input: str
    conversation_state: ConversationState | None = None
    chat_model: ChatModelSelection = Field(default_factory=ChatModelSelection)
    model_api_key: str | None = Field(None, description="Per-call API key override")
    mcp_tools: list[McpToolDefinition] = Field(default_factory=list)
    mcp_servers: list[McpHttpServer] = Field(default_factory=list)
    system_prompt: str = ""
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1024, ge=64, le=8192)
    memory_size: int = Field(8, ge=2, le=50)
    step_limit: int = Field(4, ge=1, le=12)
    structured_output_enabled: bool = False
    schema_type: SchemaType = SchemaType.JSON_EXAMPLE
    json_example: str | None = None
    json_schema: str | None = None
    auto_fix_format: bool = False

    @property
    def tool_definitions(self) -> list[McpToolDefinition]:
        """Tools of every HTTP server followed by the individual tools.

        Duplicate ids are kept here; registration keeps the first and skips the rest.
        """
        definitions = [tool for server in self.mcp_servers for tool in server.definitions()]
        return [*definitions, *self.mcp_tools]

    @property
    def structured_output(self) -> "StructuredOutputConfig | None":
        """Structured-output settings, or None when the mode is disabled."""
        if not self.structured_output_enabled:
            return None
        return StructuredOutputConfig(
            schema_type=self.schema_type,
            json_example=self.json_example,
            json_schema=self.json_schema,
            auto_fix=self.auto_fix_format,
        )


@dataclass(frozen=True)
class StructuredOutputConfig:
    """Resolved structured-output settings.

    Attributes:
        schema_type: Whether the schema comes from an example or a JSON Schema
        json_example: Example JSON document text
        json_schema: JSON Schema document text
        auto_fix: Fall back to a plain completion and JSON recovery on failure
    """

    schema_type: SchemaType
    json_example: str | None = None
    json_schema: str | None = None
    auto_fix: bool = False


@dataclass(frozen=True)
class ResolvedChatModel:
    """Provider, model, credentials and endpoint ready for a client.

    Attributes:
        provider: Model provider
        model_id: Concrete model identifier
        api_key: Resolved API key
        base_url: API base URL, None for the provider's own default
        headers: Extra HTTP headers for completion requests
    """

    provider: ModelProvider
    model_id: str
    api_key: str
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def litellm_model(self) -> str:
        """Model string in LiteLLM's ``provider/model`` form."""
        return f"{self.provider.value}/{self.model_id}"

    def __repr__(self) -> str:
        return (
            f"ResolvedChatModel(provider={self.provider.value!r}, "
            f"model_id={self.model_id!r}, api_key=<obfuscated>, "
            f"base_url={self.base_url!r})"
        )


@dataclass(frozen=True)
class ToolLoopConfig:
    """Generation limits of the tool loop.

    Attributes:
        temperature: Sampling temperature (0 to 2)
        max_tokens: Output token cap per completion
        step_limit: Maximum Think→Act→Observe iterations
    """

    temperature: float = 0.7
    max_tokens: int = 1024
    step_limit: int = 4

    @property
    def recursion_limit(self) -> int:
        """LangGraph super-step budget: a reasoner and a tools pass per step."""
        return 2 * self.step_limit + 2

