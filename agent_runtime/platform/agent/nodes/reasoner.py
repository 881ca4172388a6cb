"""Reasoner node for LLM-based reasoning."""

import logging

from langchain_core.messages import AIMessage

from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.messages import ReasoningStep
from agent_runtime.platform.agent.state import ToolLoopState

from .base import Node, finish_reason, message_text

logger = logging.getLogger(__name__)


class ReasonerNode(Node):
    """Node that invokes the LLM to decide the next action.

    A response without tool calls completes its reasoning step here; steps
    that request tools are completed by the tools node.
    """

    def __init__(self, llm: LlmClient):
        """Initialize the reasoner node.

        Args:
            llm: LLM client, with tools bound when any are registered
        """
        self.llm = llm

    def _get_token_state_update(self, response: AIMessage) -> dict:
        """Extract token usage from response as state update dict.

        Args:
            response: AIMessage from LLM

        Returns:
            Dict with input/output tokens keyed by model for state reducer
        """
        input_tokens, output_tokens = self.llm.extract_tokens(response)
        return {
            "input_tokens_by_model": {self.llm.model_name: input_tokens},
            "output_tokens_by_model": {self.llm.model_name: output_tokens},
        }

    async def __call__(self, state: ToolLoopState) -> ToolLoopState:
        """Ask the model to continue the conversation.

        Args:
            state: Current loop state

        Returns:
            State update with the model response and, for a final answer,
            the completed reasoning step
        """
        messages = state["messages"]
        step = state.get("reasoning_steps", 0) + 1
        logger.debug(f"Step {step}, messages count: {len(messages)}")

        response = await self.llm.ainvoke(messages)
        update = {
            "messages": [response],
            "reasoning_steps": step,
            **self._get_token_state_update(response),
        }
        if not response.tool_calls:
            update["reasoning_trace"] = [
                ReasoningStep(
                    step=step,
                    thought=message_text(response),
                    finish_reason=finish_reason(response),
                )
            ]
        return update  # type: ignore
