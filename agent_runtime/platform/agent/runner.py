"""Single entry point for agent runs.

A run either resolves a structured answer or drives the tool loop; the choice
is made once by ``select_mode`` and the two paths never mix.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from openinference.instrumentation import using_session
from opentelemetry import trace

from agent_runtime.platform.agent.config import (
    AgentRunRequest,
    ResolvedChatModel,
    StructuredOutputConfig,
    ToolLoopConfig,
)
from agent_runtime.platform.agent.conversation import ConversationTurn, to_model_messages
from agent_runtime.platform.agent.errors import AgentValidationError
from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.loop import ToolLoopEngine
from agent_runtime.platform.agent.mcp import McpToolDefinition
from agent_runtime.platform.agent.messages import AgentRunOutput
from agent_runtime.platform.agent.metrics import AgentMetricsLabels, collect_agent_metrics
from agent_runtime.platform.agent.providers import resolve_chat_model
from agent_runtime.platform.agent.secrets import SecretsResolver
from agent_runtime.platform.agent.stream import AgentStreamRecorder, ProgressCallback, TraceSink
from agent_runtime.platform.agent.structured import StructuredOutputResolver
from agent_runtime.platform.agent.tool_registry import McpToolRegistry
from agent_runtime.platform.observability.logging import agent_run_context
from agent_runtime.platform.settings import ProviderDefaults

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

type LlmFactory = Callable[[ResolvedChatModel, float, int], LlmClient]


@dataclass(frozen=True)
class ToolLoopMode:
    config: ToolLoopConfig
    tools: list[McpToolDefinition] = field(default_factory=list)


@dataclass(frozen=True)
class StructuredOutputMode:
    config: StructuredOutputConfig


type RunMode = ToolLoopMode | StructuredOutputMode


def select_mode(request: AgentRunRequest) -> RunMode:
    """Choose how a request is answered."""
    if (structured := request.structured_output) is not None:
        return StructuredOutputMode(structured)
    return ToolLoopMode(
        config=ToolLoopConfig(
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            step_limit=request.step_limit,
        ),
        tools=request.tool_definitions,
    )


@dataclass(frozen=True)
class AgentRunContext:
    """Collaborators and identifiers of one run.

    Attributes:
        run_id: Agent run identifier; generated when None
        workflow_run_id: Enclosing workflow run, stamped on trace events
        node_ref: Workflow node reference, stamped on trace events
        trace_sink: Destination for trace events; events are logged when None
        secrets: Resolver for ``chatModel.apiKeySecretId``
        http_client: Shared HTTP client for tool calls
        progress: Progress logger for the trace fallback
    """

    run_id: str | None = None
    workflow_run_id: str | None = None
    node_ref: str | None = None
    trace_sink: TraceSink | None = None
    secrets: SecretsResolver | None = None
    http_client: httpx.AsyncClient | None = None
    progress: ProgressCallback | None = None


class AgentRunner:
    """Runs agent requests end to end.

    Usage:
        runner = AgentRunner()
        output = await runner.run(AgentRunRequest(user_input="hi"), AgentRunContext(secrets=...))
    """

    def __init__(
        self,
        provider_defaults: ProviderDefaults | None = None,
        mcp_timeout: float = 60.0,
        llm_factory: LlmFactory = LlmClient,
    ) -> None:
        """Initialize the runner.

        Args:
            provider_defaults: Environment defaults for base URLs and headers
            mcp_timeout: Per-call MCP tool timeout in seconds
            llm_factory: Builds the LLM client from a resolved model. Inject for testing.
        """
        self.provider_defaults = provider_defaults or ProviderDefaults()
        self.mcp_timeout = mcp_timeout
        self._llm_factory = llm_factory

    async def run(
        self, request: AgentRunRequest, context: AgentRunContext | None = None
    ) -> AgentRunOutput:
        """Execute one agent turn.

        Args:
            request: User input, memory, model selection and run settings
            context: Run identifiers and collaborators

        Returns:
            AgentRunOutput with the answer, updated memory and trace

        Raises:
            AgentValidationError: For empty input or structured-output failures
            AgentConfigurationError: If model credentials cannot be resolved
            McpToolError: If a tool call fails
        """
        context = context or AgentRunContext()
        user_input = request.user_input.strip()
        if not user_input:
            raise AgentValidationError("AI Agent requires a non-empty user input.")

        agent_run_id = context.run_id or str(uuid.uuid4())

        with tracer.start_as_current_span("agent_run") as span:
            span.set_attribute("agent.run_id", agent_run_id)
            span.set_attribute("agent.provider", request.chat_model.provider.value)

            stage = "tool_registration"
            try:
                mode = select_mode(request)
                mode_name = "structured-output" if isinstance(mode, StructuredOutputMode) else "tool-loop"
                span.set_attribute("agent.mode", mode_name)

                stage = "model_resolution"
                model = await resolve_chat_model(
                    request.chat_model,
                    override_key=request.model_api_key,
                    secrets=context.secrets,
                    defaults=self.provider_defaults,
                )
                llm = self._llm_factory(model, request.temperature, request.max_tokens)

                turn = ConversationTurn.start(
                    request.conversation_state,
                    request.system_prompt,
                    user_input,
                    request.memory_size,
                )
                recorder = AgentStreamRecorder(
                    agent_run_id,
                    workflow_run_id=context.workflow_run_id,
                    node_ref=context.node_ref,
                    sink=context.trace_sink,
                    progress=context.progress,
                )
                span.set_attribute("agent.session_id", turn.session_id)
                labels = AgentMetricsLabels(model.provider.value, mode_name)

                with (
                    using_session(turn.session_id),
                    agent_run_context(agent_run_id, turn.session_id, context.workflow_run_id),
                ):
                    async with collect_agent_metrics(labels):
                        recorder.emit_message_start()
                        messages = to_model_messages(turn.messages)
                        logger.info(f"Agent run {agent_run_id} in progress ({mode_name})")

                        match mode:
                            case StructuredOutputMode(config=structured_config):
                                stage = "structured_output"
                                resolver = StructuredOutputResolver.from_config(llm, structured_config)
                                result = await resolver.resolve(messages)
                                state = turn.complete([], result.response_text)
                                output = AgentRunOutput(
                                    response_text=result.response_text,
                                    structured_output=result.object,
                                    conversation_state=state,
                                    usage=result.usage,
                                    raw_response=result.raw_response,
                                    agent_run_id=agent_run_id,
                                )
                                finish_reason = result.finish_reason

                            case ToolLoopMode(config=loop_config, tools=tools):
                                stage = "tool_registration"
                                registry = McpToolRegistry(
                                    turn.session_id,
                                    recorder,
                                    http_client=context.http_client,
                                    timeout=self.mcp_timeout,
                                )
                                registry.register(tools)
                                logger.info(
                                    f"Using {model.provider.value} model '{model.model_id}' "
                                    f"with {len(registry)} connected tool(s)"
                                )

                                stage = "generation"
                                engine = ToolLoopEngine(llm, registry, recorder, loop_config)
                                result = await engine.run(messages)
                                state = turn.complete(
                                    result.tool_messages,
                                    result.response_text,
                                    result.tool_invocations,
                                )
                                output = AgentRunOutput(
                                    response_text=result.response_text,
                                    conversation_state=state,
                                    tool_invocations=result.tool_invocations,
                                    reasoning_trace=result.reasoning_trace,
                                    usage=result.usage,
                                    raw_response=result.raw_response,
                                    agent_run_id=agent_run_id,
                                )
                                finish_reason = result.finish_reason

                        recorder.emit_text_delta(output.response_text)
                        recorder.emit_finish(finish_reason)
            except Exception as e:
                e.add_note(f"Agent run {agent_run_id} failed during {stage}")
                logger.error(f"Agent run {agent_run_id} failed during {stage}: {e}")
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

        logger.info(f"Agent run {agent_run_id} completed")
        return output
