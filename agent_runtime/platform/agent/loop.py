"""Bounded Think→Act→Observe loop built on LangGraph.

The graph alternates a reasoner node (one model call) and a tools node (the
requested tool calls) until the model answers without tool calls or the step
limit is reached. Reasoning steps are streamed to the trace recorder as each
node completes them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage
from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph
from langgraph.prebuilt import tools_condition

from agent_runtime.platform.agent.config import ToolLoopConfig
from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.messages import (
    AgentMessage,
    ReasoningStep,
    TokenUsage,
    ToolInvocationEntry,
)
from agent_runtime.platform.agent.nodes import ReasonerNode, ToolsNode, raw_response
from agent_runtime.platform.agent.state import ToolLoopState
from agent_runtime.platform.agent.stream import AgentStreamRecorder
from agent_runtime.platform.agent.tool_registry import McpToolRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolLoopResult:
    """Outcome of a completed tool loop.

    Attributes:
        response_text: Thought of the last reasoning step
        finish_reason: Finish reason of the last reasoning step
        usage: Token usage summed over every model call
        reasoning_trace: Completed steps, in completion order
        tool_invocations: Tool calls made during the loop
        tool_messages: Tool-role conversation messages to append to memory
        raw_response: Serialized final model response
    """

    response_text: str
    finish_reason: str
    usage: TokenUsage
    reasoning_trace: list[ReasoningStep] = field(default_factory=list)
    tool_invocations: list[ToolInvocationEntry] = field(default_factory=list)
    tool_messages: list[AgentMessage] = field(default_factory=list)
    raw_response: dict[str, Any] | None = None


class ToolLoopEngine:
    """Runs the tool loop for one agent run.

    Usage:
        engine = ToolLoopEngine(llm, registry, recorder, ToolLoopConfig(step_limit=4))
        result = await engine.run(messages)
    """

    def __init__(
        self,
        llm: LlmClient,
        registry: McpToolRegistry,
        recorder: AgentStreamRecorder,
        config: ToolLoopConfig,
    ) -> None:
        self.llm = llm
        self.registry = registry
        self.recorder = recorder
        self.config = config

    def _route_after_tools(self, state: ToolLoopState) -> str:
        if state.get("reasoning_steps", 0) >= self.config.step_limit:
            logger.info(f"Step limit of {self.config.step_limit} reached")
            return END
        return "reasoner"

    def build_graph(self) -> CompiledStateGraph:
        """Assemble the reasoner/tools graph.

        Tools are bound to the model only when at least one is registered.
        """
        llm = self.llm.bind_tools(self.registry.langchain_tools) if len(self.registry) else self.llm

        workflow = StateGraph(ToolLoopState)  # type: ignore[bad-specialization]

        workflow.add_node("reasoner", ReasonerNode(llm))  # type: ignore
        workflow.add_node("tools", ToolsNode(self.registry))  # type: ignore

        workflow.add_edge(START, "reasoner")  # type: ignore
        workflow.add_conditional_edges("reasoner", tools_condition)
        workflow.add_conditional_edges("tools", self._route_after_tools, ["reasoner", END])

        compiled = workflow.compile()
        return compiled.with_config({"recursion_limit": self.config.recursion_limit})  # type: ignore

    async def run(self, messages: list[BaseMessage]) -> ToolLoopResult:
        """Run the loop over the prepared model messages.

        Every completed reasoning step is emitted before the next model call.
        Exceptions from the model or a tool abort the loop and propagate.

        Args:
            messages: Model-facing conversation, ending with the user message

        Returns:
            ToolLoopResult with the final answer and everything the loop did
        """
        graph = self.build_graph()
        initial: ToolLoopState = {
            "messages": messages,  # type: ignore[typeddict-item]
            "reasoning_steps": 0,
            "reasoning_trace": [],
            "tool_invocations": [],
            "tool_messages": [],
            "input_tokens_by_model": {},
            "output_tokens_by_model": {},
        }

        final_state: dict[str, Any] = dict(initial)
        async for mode, chunk in graph.astream(initial, stream_mode=["updates", "values"]):
            if mode == "values":
                final_state = chunk
                continue
            for update in chunk.values():
                for step in (update or {}).get("reasoning_trace", []):
                    self.recorder.emit_reasoning_step(step)

        trace: list[ReasoningStep] = final_state.get("reasoning_trace", [])
        last_step = trace[-1] if trace else None
        last_response = next(
            (m for m in reversed(final_state.get("messages", [])) if isinstance(m, AIMessage)),
            None,
        )
        input_tokens = sum(final_state.get("input_tokens_by_model", {}).values())
        output_tokens = sum(final_state.get("output_tokens_by_model", {}).values())

        logger.info(
            f"Tool loop finished after {len(trace)} step(s) "
            f"with {len(final_state.get('tool_invocations', []))} tool call(s)"
        )
        return ToolLoopResult(
            response_text=last_step.thought if last_step else "",
            finish_reason=last_step.finish_reason if last_step else "other",
            usage=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            reasoning_trace=trace,
            tool_invocations=final_state.get("tool_invocations", []),
            tool_messages=final_state.get("tool_messages", []),
            raw_response=raw_response(last_response),
        )
