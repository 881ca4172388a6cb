"""LLM client implementation using LiteLLM."""

from typing import Any, Self

from langchain_core.messages import AIMessage
from langchain_core.runnables import Runnable, RunnableConfig
from langchain_core.tools import BaseTool
from langchain_litellm import ChatLiteLLM
from pydantic import BaseModel

from agent_runtime.platform.agent.config import ResolvedChatModel
from agent_runtime.platform.agent.messages import TokenUsage
from agent_runtime.platform.agent.metrics import record_agent_tokens


class LlmClient(Runnable):
    """LLM client that wraps ChatLiteLLM as a Runnable.

    Provides a consistent interface for LLM interactions with:
    - Full LCEL compatibility (pipe operator, chains)
    - Automatic token metrics recording
    - Tool binding and schema-constrained completions

    Calls are made once; the client never retries.
    """

    def __init__(
        self,
        model: ResolvedChatModel,
        temperature: float,
        max_tokens: int,
        llm=None,
    ):
        """Initialize the LLM client.

        Args:
            model: Resolved provider, model id, credentials and base URL
            temperature: Sampling temperature
            max_tokens: Output token cap per completion
            llm: Optional pre-configured LLM instance (for bind_tools)
        """
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._llm = llm or ChatLiteLLM(
            model=model.litellm_model,
            api_key=model.api_key,
            api_base=model.base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=1,
            model_kwargs={"extra_headers": model.headers} if model.headers else {},
        )

    @property
    def model_name(self) -> str:
        """The LiteLLM model identifier."""
        return self._model.litellm_model

    @property
    def provider(self) -> str:
        return self._model.provider.value

    def bind_tools(self, tools: list[BaseTool]) -> Self:
        """Return a new client with tools bound.

        Args:
            tools: Tools to bind to the LLM

        Returns:
            New LlmClient instance with tools bound
        """
        return LlmClient(
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            llm=self._llm.bind_tools(tools),
        )

    async def ainvoke_structured(
        self,
        schema: type[BaseModel],
        input,
        config: RunnableConfig | None = None,
    ) -> dict[str, Any]:
        """Run a schema-constrained completion.

        Args:
            schema: Pydantic model the response must satisfy
            input: Messages to send to the LLM
            config: Optional runnable config

        Returns:
            Dict with ``raw`` (AIMessage), ``parsed`` (model instance or None)
            and ``parsing_error`` (exception or None)
        """
        structured = self._llm.with_structured_output(schema, include_raw=True)
        result = await structured.ainvoke(input, config=config)
        raw = result.get("raw")
        if isinstance(raw, AIMessage):
            self._record_tokens(raw)
        return result

    @staticmethod
    def extract_tokens(message: AIMessage) -> tuple[int, int]:
        """Extract token counts from an AIMessage's usage metadata.

        Args:
            message: AIMessage from LLM response

        Returns:
            Tuple of (input_tokens, output_tokens), defaults to (0, 0) if unavailable
        """
        usage = getattr(message, "usage_metadata", None)
        if not usage:
            return 0, 0
        return usage.get("input_tokens", 0), usage.get("output_tokens", 0)

    @classmethod
    def extract_usage(cls, message: AIMessage) -> TokenUsage | None:
        """Token usage of a response, or None when the provider reported none."""
        if not getattr(message, "usage_metadata", None):
            return None
        input_tokens, output_tokens = cls.extract_tokens(message)
        total = message.usage_metadata.get("total_tokens") or input_tokens + output_tokens
        return TokenUsage(
            input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total
        )

    def _record_tokens(self, response: AIMessage) -> None:
        input_tokens, output_tokens = self.extract_tokens(response)
        record_agent_tokens(self.provider, self.model_name, input_tokens, output_tokens)

    def invoke(self, input, config: RunnableConfig | None = None, **kwargs):
        """Invoke the LLM synchronously.

        Args:
            input: Messages to send to the LLM
            config: Optional runnable config
            **kwargs: Additional arguments passed to underlying LLM

        Returns:
            The LLM's response message
        """
        response = self._llm.invoke(input, config=config, **kwargs)
        self._record_tokens(response)
        return response

    async def ainvoke(self, input, config: RunnableConfig | None = None, **kwargs):
        """Invoke the LLM asynchronously.

        Args:
            input: Messages to send to the LLM
            config: Optional runnable config
            **kwargs: Additional arguments passed to underlying LLM

        Returns:
            The LLM's response message
        """
        response = await self._llm.ainvoke(input, config=config, **kwargs)
        self._record_tokens(response)
        return response
