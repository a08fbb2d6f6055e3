"""Model provider client.

Wraps the OpenAI chat completions API behind the two capabilities the chat
backend needs:
- generate text from messages, streamed as text deltas and tool calls
- generate a schema-conformant object or array, streamed as partial values

One provider is created at application startup and injected wherever a
model call is made.
"""
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Type
import json
import logging

from openai import AsyncOpenAI, APIError, APITimeoutError
from pydantic import BaseModel, ValidationError
from pydantic_core import from_json

from app.ai.messages import to_openai_messages
from app.core.errors import UpstreamGenerationFailure

logger = logging.getLogger(__name__)


@dataclass
class TextDelta:
    text: str
    type: str = "text-delta"


@dataclass
class ToolCall:
    tool_call_id: str
    tool_name: str
    args: Any
    raw_arguments: str = ""
    type: str = "tool-call"


@dataclass
class StepFinish:
    finish_reason: Optional[str] = None
    type: str = "step-finish"


def _parse_partial(buffer: str) -> Any:
    """Parse the JSON received so far; an unfinished trailing string is kept."""
    if not buffer.strip():
        return None
    try:
        return from_json(buffer, allow_partial="trailing-strings")
    except ValueError:
        return None


def _schema_instruction(schema: dict[str, Any]) -> str:
    return (
        "Respond only with a JSON object that conforms to this JSON schema:\n"
        f"{json.dumps(schema)}"
    )


class ModelProvider:
    """Streaming and structured generation over an AsyncOpenAI client."""

    def __init__(self, client: AsyncOpenAI, timeout: float = 30.0):
        self.client = client
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "ModelProvider":
        client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
        )
        return cls(client, timeout=settings.OPENAI_TIMEOUT)

    async def close(self) -> None:
        await self.client.close()

    def _build_messages(
        self,
        system: Optional[str],
        messages: Optional[list[dict[str, Any]]],
        prompt: Optional[str],
    ) -> list[dict[str, Any]]:
        payload: list[dict[str, Any]] = []
        if system:
            payload.append({"role": "system", "content": system})
        if messages:
            payload.extend(to_openai_messages(messages))
        if prompt is not None:
            payload.append({"role": "user", "content": prompt})
        return payload

    async def stream_text(
        self,
        model: str,
        system: Optional[str] = None,
        messages: Optional[list[dict[str, Any]]] = None,
        prompt: Optional[str] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        prediction: Optional[str] = None,
    ) -> AsyncIterator[Any]:
        """
        Stream one model step.

        Yields TextDelta for each text fragment, then one ToolCall per
        requested tool call (arguments fully assembled), then StepFinish.

        Raises:
            UpstreamGenerationFailure: If the provider call fails
        """
        kwargs: dict[str, Any] = {}
        if tools:
            kwargs["tools"] = tools
        if prediction:
            kwargs["prediction"] = {"type": "content", "content": prediction}

        calls: dict[int, dict[str, str]] = {}
        finish_reason = None
        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(system, messages, prompt),
                stream=True,
                timeout=self.timeout,
                **kwargs,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    yield TextDelta(text=delta.content)
                for call in delta.tool_calls or []:
                    entry = calls.setdefault(call.index, {"id": "", "name": "", "arguments": ""})
                    if call.id:
                        entry["id"] = call.id
                    if call.function:
                        entry["name"] += call.function.name or ""
                        entry["arguments"] += call.function.arguments or ""
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except (APIError, APITimeoutError) as e:
            logger.error(f"Model provider error for model={model}: {str(e)}")
            raise UpstreamGenerationFailure(str(e)) from e

        for index in sorted(calls):
            entry = calls[index]
            try:
                args = json.loads(entry["arguments"] or "{}")
            except json.JSONDecodeError:
                # Left for the registry to reject as invalid arguments
                args = None
            yield ToolCall(
                tool_call_id=entry["id"],
                tool_name=entry["name"],
                args=args,
                raw_arguments=entry["arguments"],
            )
        yield StepFinish(finish_reason=finish_reason)

    async def _stream_json(self, model: str, system: str, prompt: str) -> AsyncIterator[str]:
        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(system, None, prompt),
                response_format={"type": "json_object"},
                stream=True,
                timeout=self.timeout,
            )
            async with stream:
                async for chunk in stream:
                    if chunk.choices and chunk.choices[0].delta.content:
                        yield chunk.choices[0].delta.content
        except (APIError, APITimeoutError) as e:
            logger.error(f"Model provider error for model={model}: {str(e)}")
            raise UpstreamGenerationFailure(str(e)) from e

    async def stream_object(
        self,
        model: str,
        system: Optional[str],
        prompt: str,
        schema: Type[BaseModel],
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream successive partial snapshots of one object of `schema`."""
        instruction = _schema_instruction(schema.model_json_schema())
        system_text = f"{system}\n\n{instruction}" if system else instruction

        buffer = ""
        last = None
        async with aclosing(self._stream_json(model, system_text, prompt)) as fragments:
            async for fragment in fragments:
                buffer += fragment
                partial = _parse_partial(buffer)
                if isinstance(partial, dict) and partial != last:
                    last = partial
                    yield partial

    async def stream_elements(
        self,
        model: str,
        system: Optional[str],
        prompt: str,
        schema: Type[BaseModel],
        limit: Optional[int] = None,
    ) -> AsyncIterator[BaseModel]:
        """
        Stream complete elements of an array of `schema` objects.

        An element is yielded once the next one has started or the stream
        has ended; elements that fail validation are skipped. Reaching
        `limit` closes the provider stream.
        """
        wrapper = {
            "type": "object",
            "properties": {"elements": {"type": "array", "items": schema.model_json_schema()}},
            "required": ["elements"],
        }
        instruction = _schema_instruction(wrapper)
        system_text = f"{system}\n\n{instruction}" if system else instruction

        buffer = ""
        emitted = 0

        def _elements() -> list[Any]:
            partial = _parse_partial(buffer)
            if isinstance(partial, dict) and isinstance(partial.get("elements"), list):
                return partial["elements"]
            return []

        def _validated(raw: Any) -> Optional[BaseModel]:
            try:
                return schema.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping malformed element: {str(e)}")
                return None

        async with aclosing(self._stream_json(model, system_text, prompt)) as fragments:
            async for fragment in fragments:
                buffer += fragment
                elements = _elements()
                while emitted < len(elements) - 1:
                    if limit is not None and emitted >= limit:
                        return
                    element = _validated(elements[emitted])
                    emitted += 1
                    if element is not None:
                        yield element

        for raw in _elements()[emitted:]:
            if limit is not None and emitted >= limit:
                return
            element = _validated(raw)
            emitted += 1
            if element is not None:
                yield element

    async def generate_object(
        self,
        model: str,
        prompt: str,
        schema: Type[BaseModel],
        system: Optional[str] = None,
    ) -> BaseModel:
        """
        Generate one object conforming to `schema`.

        Raises:
            UpstreamGenerationFailure: If the call fails or the output does
                not match the schema
        """
        instruction = _schema_instruction(schema.model_json_schema())
        system_text = f"{system}\n\n{instruction}" if system else instruction
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(system_text, None, prompt),
                response_format={"type": "json_object"},
                timeout=self.timeout,
            )
            return schema.model_validate_json(response.choices[0].message.content or "")
        except (APIError, APITimeoutError) as e:
            logger.error(f"Model provider error for model={model}: {str(e)}")
            raise UpstreamGenerationFailure(str(e)) from e
        except ValidationError as e:
            logger.error(f"Invalid response format from model={model}: {str(e)}")
            raise UpstreamGenerationFailure("Invalid response format from LLM") from e

    async def generate_text(self, model: str, system: Optional[str], prompt: str) -> str:
        """Generate a complete text answer for a single prompt."""
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=self._build_messages(system, None, prompt),
                timeout=self.timeout,
            )
        except (APIError, APITimeoutError) as e:
            logger.error(f"Model provider error for model={model}: {str(e)}")
            raise UpstreamGenerationFailure(str(e)) from e
        return response.choices[0].message.content or ""
