"""Tool registry for the chat turn loop and agent executions.

Resolves a tool name requested by the model to a Tool, validates the
arguments against the tool's parameters, and runs it.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional
import logging

from pydantic import BaseModel, ValidationError

from app.core.errors import InvalidToolArguments, UnknownTool
from app.tools.schema import synthesize_validator

logger = logging.getLogger(__name__)

PLACEHOLDER_RESULT = "Tool execution result"


@dataclass
class Tool:
    """
    A callable tool.

    Built-in tools declare `parameters` as a pydantic model. Tools authored
    by users carry `raw_parameters` instead; their validator is synthesized
    on every call.
    """
    name: str
    description: str
    execute: Callable[[BaseModel], Awaitable[Any]]
    parameters: Optional[type[BaseModel]] = None
    raw_parameters: Any = None

    def validator(self) -> type[BaseModel]:
        if self.parameters is not None:
            return self.parameters
        return synthesize_validator(self.raw_parameters, name=f"{self.name}_arguments")

    def validate(self, args: Any) -> BaseModel:
        """
        Validate arguments without coercion.

        Raises:
            InvalidToolArguments: If args is not an object or mismatches
        """
        if not isinstance(args, dict):
            raise InvalidToolArguments(self.name, "arguments must be a JSON object")
        try:
            return self.validator().model_validate(args)
        except ValidationError as e:
            raise InvalidToolArguments(self.name, str(e)) from e

    async def invoke(self, args: Any) -> Any:
        return await self.execute(self.validate(args))

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.validator().model_json_schema(),
            },
        }


class ToolRegistry:
    """Registry of the tools offered to the model for one turn or execution."""

    def __init__(self, tools: Iterable[Tool], active_tools: Optional[Iterable[str]] = None):
        self.tools = {tool.name: tool for tool in tools}
        self.active_tools = list(active_tools) if active_tools is not None else list(self.tools)

    def resolve(self, name: str) -> Tool:
        """
        Resolve an active tool by name.

        Raises:
            UnknownTool: If the name is not an active tool
        """
        if name not in self.active_tools or name not in self.tools:
            raise UnknownTool(name)
        return self.tools[name]

    async def call_tool(self, name: str, args: Any) -> Any:
        """
        Resolve, validate and run a tool.

        Raises:
            UnknownTool: If tool not found
            InvalidToolArguments: If arguments do not validate
        """
        tool = self.resolve(name)
        return await tool.invoke(args)

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """Get active tool definitions in OpenAI function-calling format."""
        return [self.tools[name].to_openai() for name in self.active_tools if name in self.tools]

    @classmethod
    def from_definitions(cls, definitions: Iterable[Any]) -> "ToolRegistry":
        """Build a registry from stored ToolDefinition rows."""
        tools = []
        for definition in definitions:

            async def _execute(args: BaseModel, _name: str = definition.name) -> Any:
                logger.info(f"Executing tool {_name} with args: {args.model_dump()}")
                return PLACEHOLDER_RESULT

            tools.append(Tool(
                name=definition.name,
                description=definition.description or "",
                execute=_execute,
                raw_parameters=definition.parameters,
            ))
        return cls(tools)
