"""Tests for the tool registry and the built-in tool table."""
from types import SimpleNamespace

import pytest

from app.core.errors import InvalidToolArguments, UnknownTool
from app.tools.definitions import (
    ALL_TOOLS,
    AUGMENTATION_TOOLS,
    DOCUMENT_TOOLS,
    GetWeatherArgs,
    build_chat_registry,
)
from app.tools.registry import PLACEHOLDER_RESULT, Tool, ToolRegistry


async def _echo(args):
    return args.model_dump()


class TestToolRegistry:
    def test_active_set_is_both_groups(self, tool_context) -> None:
        registry = build_chat_registry(tool_context)
        assert DOCUMENT_TOOLS == ["createDocument", "updateDocument", "requestSuggestions"]
        assert AUGMENTATION_TOOLS == ["getWeather", "quickSearch"]
        assert registry.active_tools == ALL_TOOLS
        names = [schema["function"]["name"] for schema in registry.get_tool_schemas()]
        assert names == ALL_TOOLS

    def test_schemas_are_openai_functions(self, tool_context) -> None:
        registry = build_chat_registry(tool_context)
        schema = registry.resolve("createDocument").to_openai()
        assert schema["type"] == "function"
        assert schema["function"]["description"]
        assert set(schema["function"]["parameters"]["properties"]) == {"title", "kind"}

    def test_unknown_tool(self, tool_context) -> None:
        registry = build_chat_registry(tool_context)
        with pytest.raises(UnknownTool):
            registry.resolve("deleteEverything")

    def test_inactive_tool_is_unknown(self) -> None:
        tool = Tool(name="echo", description="", execute=_echo, parameters=GetWeatherArgs)
        registry = ToolRegistry([tool], active_tools=[])
        with pytest.raises(UnknownTool):
            registry.resolve("echo")

    @pytest.mark.asyncio
    async def test_call_tool_validates_before_running(self) -> None:
        tool = Tool(name="weather", description="", execute=_echo, parameters=GetWeatherArgs)
        registry = ToolRegistry([tool])

        assert await registry.call_tool("weather", {"latitude": 48.8, "longitude": 2.35}) == {
            "latitude": 48.8,
            "longitude": 2.35,
        }
        with pytest.raises(InvalidToolArguments):
            await registry.call_tool("weather", {"latitude": "48.8", "longitude": 2.35})
        with pytest.raises(InvalidToolArguments):
            await registry.call_tool("weather", None)

    @pytest.mark.asyncio
    async def test_invalid_enum_is_rejected(self, tool_context) -> None:
        registry = build_chat_registry(tool_context)
        with pytest.raises(InvalidToolArguments):
            await registry.call_tool("createDocument", {"title": "x", "kind": "spreadsheet"})


class TestRegistryFromDefinitions:
    @pytest.mark.asyncio
    async def test_dynamic_tools_use_synthesized_validators(self) -> None:
        definitions = [
            SimpleNamespace(name="lookup", description="Find", parameters={"term": "x", "limit": 1}),
            SimpleNamespace(name="broken", description=None, parameters="{oops"),
        ]
        registry = ToolRegistry.from_definitions(definitions)

        assert await registry.call_tool("lookup", {"term": "pluie", "limit": 3}) == PLACEHOLDER_RESULT
        with pytest.raises(InvalidToolArguments):
            await registry.call_tool("lookup", {"term": "pluie", "limit": "3"})
        assert await registry.call_tool("broken", {}) == PLACEHOLDER_RESULT

    def test_parameters_are_synthesized_per_call(self) -> None:
        definition = SimpleNamespace(name="lookup", description="", parameters={"term": "x"})
        registry = ToolRegistry.from_definitions([definition])
        tool = registry.resolve("lookup")

        first = tool.validator()
        tool.raw_parameters = {"term": "x", "page": 1}
        assert tool.validator() is not first
        assert "page" in tool.validator().model_fields
