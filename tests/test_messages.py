"""Tests for message normalization and sanitization."""
from app.ai.messages import (
    get_most_recent_user_message,
    normalize_client_messages,
    sanitize_response_messages,
    to_openai_messages,
)


class TestNormalizeClientMessages:
    def test_tool_invocations_become_call_and_result(self) -> None:
        messages = normalize_client_messages([
            {"role": "system", "content": "ignored"},
            {"role": "user", "content": "Météo à Paris ?"},
            {
                "role": "assistant",
                "content": "",
                "toolInvocations": [
                    {
                        "toolCallId": "c1",
                        "toolName": "getWeather",
                        "args": {"latitude": 48.8, "longitude": 2.3},
                        "state": "result",
                        "result": {"current": {"temperature_2m": 12}},
                    },
                    {"toolCallId": "c2", "toolName": "quickSearch", "args": {"query": "x"}, "state": "call"},
                ],
            },
        ])

        assert [m["role"] for m in messages] == ["user", "assistant", "tool"]
        assert [p["toolCallId"] for p in messages[1]["content"]] == ["c1", "c2"]
        assert messages[2]["content"] == [{
            "type": "tool-result",
            "toolCallId": "c1",
            "toolName": "getWeather",
            "result": {"current": {"temperature_2m": 12}},
        }]

    def test_most_recent_user_message(self) -> None:
        messages = [
            {"role": "user", "content": "un"},
            {"role": "assistant", "content": "ok"},
            {"role": "user", "content": "deux"},
        ]
        assert get_most_recent_user_message(messages)["content"] == "deux"
        assert get_most_recent_user_message([{"role": "assistant", "content": "x"}]) is None


class TestSanitizeResponseMessages:
    def test_drops_unresolved_tool_calls_and_empty_messages(self) -> None:
        messages = [
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Je cherche."},
                    {"type": "tool-call", "toolCallId": "done", "toolName": "quickSearch", "args": {}},
                ],
            },
            {"role": "tool", "content": [{"type": "tool-result", "toolCallId": "done", "result": []}]},
            {
                "role": "assistant",
                "content": [{"type": "tool-call", "toolCallId": "dangling", "toolName": "getWeather", "args": {}}],
            },
            {"role": "assistant", "content": [{"type": "text", "text": ""}]},
        ]

        sanitized = sanitize_response_messages(messages)

        assert len(sanitized) == 2
        assert [p["type"] for p in sanitized[0]["content"]] == ["text", "tool-call"]
        assert sanitized[1]["role"] == "tool"


class TestToOpenAIMessages:
    def test_assistant_tool_calls_and_results(self) -> None:
        converted = to_openai_messages([
            {"role": "user", "content": "Bonjour"},
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Voyons."},
                    {"type": "tool-call", "toolCallId": "c1", "toolName": "getWeather", "args": {"latitude": 1}},
                ],
            },
            {"role": "tool", "content": [{"type": "tool-result", "toolCallId": "c1", "result": {"t": 3}}]},
        ])

        assert converted[0] == {"role": "user", "content": "Bonjour"}
        assert converted[1]["content"] == "Voyons."
        assert converted[1]["tool_calls"][0]["function"] == {"name": "getWeather", "arguments": '{"latitude": 1}'}
        assert converted[2] == {"role": "tool", "tool_call_id": "c1", "content": '{"t": 3}'}
