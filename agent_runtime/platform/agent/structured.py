"""Structured output: force the final answer into a caller-supplied JSON shape.

The schema comes either from an example JSON document (every observed key
becomes required) or from a JSON Schema document. The answer is produced by a
single schema-constrained completion; when that fails and auto-fix is enabled,
a plain completion is requested and JSON is recovered from its text.
"""

import json
import keyword
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from agent_runtime.platform.agent.config import SchemaType, StructuredOutputConfig
from agent_runtime.platform.agent.errors import AgentValidationError
from agent_runtime.platform.agent.llm_client import LlmClient
from agent_runtime.platform.agent.messages import TokenUsage
from agent_runtime.platform.agent.nodes.base import finish_reason, message_text, raw_response

logger = logging.getLogger(__name__)

RESPONSE_SNIPPET_LENGTH = 500

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "null": type(None),
}

_CODE_FENCE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?(.*?)```", re.DOTALL)
_PREAMBLE = re.compile(
    r"^\s*(?:here(?:'s| is| are)\b[^\n:{\[]*[:\n]?|sure\b[^\n:{\[]*[:\n]?"
    r"|output\s*:|result\s*:|response\s*:|answer\s*:|json\s*:)\s*",
    re.IGNORECASE,
)


def _load_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AgentValidationError(
            f"Structured output {source} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            details={"source": source},
        ) from e


def infer_schema(value: Any) -> dict[str, Any]:
    """Infer a JSON Schema from an example value.

    Objects require every key they contain; arrays take their item schema
    from the first element, and empty arrays accept any item.
    """
    match value:
        case bool():
            return {"type": "boolean"}
        case int():
            return {"type": "integer"}
        case float():
            return {"type": "number"}
        case str():
            return {"type": "string"}
        case None:
            return {"type": "null"}
        case list():
            return {"type": "array", "items": infer_schema(value[0]) if value else {}}
        case dict():
            return {
                "type": "object",
                "properties": {key: infer_schema(item) for key, item in value.items()},
                "required": list(value),
            }
    return {}


def json_example_to_schema(example: str) -> dict[str, Any]:
    """Convert an example JSON document into a JSON Schema.

    Raises:
        AgentValidationError: If the example is not valid JSON
    """
    return infer_schema(_load_json(example, "JSON example"))


def parse_json_schema(document: str) -> dict[str, Any]:
    """Parse a JSON Schema document.

    Raises:
        AgentValidationError: If the document is not valid JSON or not an object
    """
    schema = _load_json(document, "JSON schema")
    if not isinstance(schema, dict):
        raise AgentValidationError("Structured output JSON schema must be a JSON object")
    return schema


def _field_name(name: str, index: int) -> str:
    if name.isidentifier() and not keyword.iskeyword(name) and not name.startswith(("_", "model_")):
        return name
    return f"field_{index}"


def _model_name(name: str) -> str:
    return "".join(part.capitalize() for part in re.split(r"[^a-zA-Z0-9]+", name) if part) or "Item"


def _schema_type(schema: dict[str, Any], name: str) -> Any:
    if "enum" in schema and schema["enum"]:
        return Literal[tuple(schema["enum"])]

    for combinator in ("anyOf", "oneOf"):
        if options := schema.get(combinator):
            return Union[tuple(_schema_type(option, name) for option in options)]

    json_type = schema.get("type")
    if isinstance(json_type, list):
        return Union[tuple(_schema_type({**schema, "type": t}, name) for t in json_type)]
    if json_type is None and "properties" in schema:
        json_type = "object"

    match json_type:
        case "object":
            if schema.get("properties"):
                return build_model_from_schema(schema, name)
            return dict[str, Any]
        case "array":
            items = schema.get("items")
            if isinstance(items, dict) and items:
                return list[_schema_type(items, f"{name}Item")]
            return list[Any]
        case str() if json_type in _JSON_TYPES:
            return _JSON_TYPES[json_type]
    return Any


def build_model_from_schema(schema: dict[str, Any], name: str = "StructuredOutput") -> type[BaseModel]:
    """Build a pydantic model from an object JSON Schema.

    Supports ``type`` (including type lists), ``enum``, ``anyOf``/``oneOf``,
    ``properties``/``required``, ``items`` and ``description``. Fields keep
    the original property names as aliases.

    Raises:
        AgentValidationError: If the schema does not describe an object
    """
    properties = schema.get("properties")
    if schema.get("type", "object") != "object" or not isinstance(properties, dict) or not properties:
        raise AgentValidationError(
            "Structured output schema must describe a JSON object with properties",
            details={"schema": schema},
        )

    required = set(schema.get("required", []))
    fields: dict[str, Any] = {}
    for index, (key, prop) in enumerate(properties.items()):
        prop = prop if isinstance(prop, dict) else {}
        field_type = _schema_type(prop, _model_name(f"{name}_{key}"))
        field_name = _field_name(key, index)
        alias = key if field_name != key else None
        description = prop.get("description")
        if key in required:
            fields[field_name] = (field_type, Field(alias=alias, description=description))
        else:
            fields[field_name] = (
                field_type | None,
                Field(default=None, alias=alias, description=description),
            )

    model = create_model(
        _model_name(name),
        __config__=ConfigDict(populate_by_name=True),
        **fields,
    )
    if schema.get("description"):
        model.__doc__ = schema["description"]
    return model


def _try_parse(text: str) -> Any | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict | list) else None


def _largest_spans(text: str) -> list[str]:
    spans = []
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start, end = text.find(open_char), text.rfind(close_char)
        if start != -1 and end > start:
            spans.append(text[start : end + 1])
    return sorted(spans, key=len, reverse=True)


def extract_json_from_text(text: str) -> dict[str, Any] | list[Any] | None:
    """Recover a JSON object or array from free-form model output.

    Tries, in order: a direct parse; stripping Markdown code fences and
    parsing the largest ``{...}``/``[...]`` span; stripping a conversational
    preamble and parsing directly.

    Returns:
        The recovered value, or None if nothing parses
    """
    stripped = text.strip()
    if not stripped:
        return None

    if (value := _try_parse(stripped)) is not None:
        return value

    unfenced = _CODE_FENCE.sub(lambda match: match.group(1), stripped)
    for span in _largest_spans(unfenced):
        if (value := _try_parse(span)) is not None:
            return value

    without_preamble = _PREAMBLE.sub("", stripped, count=1)
    return _try_parse(without_preamble.strip())


@dataclass(frozen=True)
class StructuredOutputResult:
    """Outcome of the structured-output path.

    Attributes:
        object: Validated structured object
        response_text: Pretty-printed JSON of ``object``
        finish_reason: Finish reason of the completion that produced it
        usage: Token usage of that completion
        raw_response: Serialized model response
        auto_fixed: Whether the object was recovered by the auto-fix fallback
    """

    object: dict[str, Any] | list[Any]
    response_text: str
    finish_reason: str
    usage: TokenUsage | None = None
    raw_response: dict[str, Any] | None = None
    auto_fixed: bool = False


class StructuredOutputResolver:
    """Produces a schema-conforming answer instead of running the tool loop."""

    def __init__(self, llm: LlmClient, schema: dict[str, Any], auto_fix: bool = False) -> None:
        """Initialize the resolver.

        Args:
            llm: LLM client without tools bound
            schema: JSON Schema describing an object
            auto_fix: Fall back to a plain completion and JSON recovery on failure
        """
        self.llm = llm
        self.schema = schema
        self.auto_fix = auto_fix
        self.output_model = build_model_from_schema(schema)

    @classmethod
    def from_config(cls, llm: LlmClient, config: StructuredOutputConfig) -> "StructuredOutputResolver":
        """Build a resolver from example or JSON Schema settings.

        Raises:
            AgentValidationError: If the schema source is missing or malformed
        """
        if config.schema_type is SchemaType.JSON_SCHEMA:
            if not (config.json_schema or "").strip():
                raise AgentValidationError("Structured output requires a JSON schema")
            schema = parse_json_schema(config.json_schema)  # type: ignore[arg-type]
        else:
            if not (config.json_example or "").strip():
                raise AgentValidationError("Structured output requires a JSON example")
            schema = json_example_to_schema(config.json_example)  # type: ignore[arg-type]
        return cls(llm, schema, auto_fix=config.auto_fix)

    def _validate(self, obj: Any) -> Any:
        """Check obj against the output model strictly and return it unchanged."""
        self.output_model.model_validate_json(json.dumps(obj), strict=True)
        return obj

    async def resolve(self, messages: list[BaseMessage]) -> StructuredOutputResult:
        """Generate the structured answer.

        Args:
            messages: Model-facing conversation, ending with the user message

        Returns:
            StructuredOutputResult with the validated object

        Raises:
            AgentValidationError: If auto-fix is enabled and cannot recover JSON
            Exception: The primary failure, unchanged, when auto-fix is disabled
        """
        try:
            return await self._resolve_with_schema(messages)
        except Exception as e:
            if not self.auto_fix:
                raise
            logger.warning(f"Structured output call failed, attempting auto-fix: {e}")
            return await self._resolve_with_auto_fix(messages, e)

    async def _resolve_with_schema(self, messages: list[BaseMessage]) -> StructuredOutputResult:
        result = await self.llm.ainvoke_structured(self.output_model, messages)
        raw: AIMessage | None = result.get("raw")
        if (error := result.get("parsing_error")) is not None:
            raise AgentValidationError(
                f"Structured output did not match the schema: {error}",
                details={"responseSnippet": message_text(raw)[:RESPONSE_SNIPPET_LENGTH] if raw else ""},
            ) from error
        parsed = result.get("parsed")
        if parsed is None:
            raise AgentValidationError("Model returned no structured output")

        if raw is not None and raw.tool_calls:
            obj = raw.tool_calls[0]["args"]
        else:
            obj = parsed.model_dump(mode="json", by_alias=True, exclude_unset=True)
        try:
            obj = self._validate(obj)
        except ValidationError as e:
            raise AgentValidationError(
                f"Structured output did not match the schema: {e}",
                details={"responseSnippet": json.dumps(obj)[:RESPONSE_SNIPPET_LENGTH]},
            ) from e
        return StructuredOutputResult(
            object=obj,
            response_text=json.dumps(obj, indent=2),
            finish_reason=finish_reason(raw) if raw else "other",
            usage=LlmClient.extract_usage(raw) if raw else None,
            raw_response=raw_response(raw),
        )

    async def _resolve_with_auto_fix(
        self, messages: list[BaseMessage], original_error: Exception
    ) -> StructuredOutputResult:
        instruction = HumanMessage(
            content=(
                "Respond only with JSON that matches this JSON Schema. "
                "Do not include explanations or Markdown.\n"
                f"{json.dumps(self.schema, indent=2)}"
            )
        )
        response = await self.llm.ainvoke([*messages, instruction])
        text = message_text(response)
        details = {
            "responseSnippet": text[:RESPONSE_SNIPPET_LENGTH],
            "originalError": str(original_error),
        }

        recovered = extract_json_from_text(text)
        if recovered is None:
            raise AgentValidationError(
                "Structured output auto-fix could not parse the model response as JSON",
                details=details,
            ) from original_error
        try:
            obj = self._validate(recovered)
        except ValidationError as e:
            raise AgentValidationError(
                f"Structured output auto-fix response did not match the schema: {e}",
                details=details,
            ) from e

        logger.info("Structured output recovered by auto-fix")
        return StructuredOutputResult(
            object=obj,
            response_text=json.dumps(obj, indent=2),
            finish_reason=finish_reason(response),
            usage=LlmClient.extract_usage(response),
            raw_response=raw_response(response),
            auto_fixed=True,
        )
