"""Conversation message helpers.

Core message shape used throughout the turn loop and in persistence:
- {"role": "user", "content": "text"}
- {"role": "assistant", "content": [{"type": "text", "text": ...},
   {"type": "tool-call", "toolCallId": ..., "toolName": ..., "args": {...}}]}
- {"role": "tool", "content": [{"type": "tool-result", "toolCallId": ...,
   "toolName": ..., "result": ...}]}
"""
from typing import Any, Optional
import json


def message_text(content: Any) -> str:
    """Return the plain text carried by a message content value."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def normalize_client_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Convert messages sent by the client into core messages.

    Assistant messages may carry `toolInvocations`; each becomes a tool-call
    part, and invocations already in the "result" state add a tool message.
    System messages from the client are dropped.
    """
    core: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content", "")

        if role == "user":
            core.append({"role": "user", "content": content})
        elif role == "assistant":
            invocations = message.get("toolInvocations") or []
            if not invocations:
                core.append({"role": "assistant", "content": content})
                continue

            parts: list[dict[str, Any]] = []
            text = message_text(content)
            if text:
                parts.append({"type": "text", "text": text})
            results = []
            for invocation in invocations:
                parts.append({
                    "type": "tool-call",
                    "toolCallId": invocation.get("toolCallId"),
                    "toolName": invocation.get("toolName"),
                    "args": invocation.get("args") or {},
                })
                if invocation.get("state") == "result":
                    results.append({
                        "type": "tool-result",
                        "toolCallId": invocation.get("toolCallId"),
                        "toolName": invocation.get("toolName"),
                        "result": invocation.get("result"),
                    })
            core.append({"role": "assistant", "content": parts})
            if results:
                core.append({"role": "tool", "content": results})
        elif role == "tool":
            core.append({"role": "tool", "content": content})
    return core


def get_most_recent_user_message(messages: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    for message in reversed(messages):
        if message.get("role") == "user":
            return message
    return None


def sanitize_response_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Drop tool calls that never received a result, and empty messages.

    Keeps persisted history free of dangling tool-call records.
    """
    resolved = {
        part.get("toolCallId")
        for message in messages
        if message.get("role") == "tool" and isinstance(message.get("content"), list)
        for part in message["content"]
        if isinstance(part, dict) and part.get("type") == "tool-result"
    }

    sanitized = []
    for message in messages:
        content = message.get("content")
        if message.get("role") != "assistant":
            sanitized.append(message)
            continue
        if isinstance(content, str):
            if content:
                sanitized.append(message)
            continue

        parts = [
            part
            for part in content or []
            if (part.get("type") == "text" and part.get("text"))
            or (part.get("type") == "tool-call" and part.get("toolCallId") in resolved)
        ]
        if parts:
            sanitized.append({**message, "content": parts})
    return sanitized


def to_openai_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert core messages into OpenAI chat completion messages."""
    converted: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        content = message.get("content")

        if role == "user":
            converted.append({"role": "user", "content": message_text(content)})
        elif role == "assistant":
            entry: dict[str, Any] = {"role": "assistant", "content": message_text(content)}
            if isinstance(content, list):
                tool_calls = [
                    {
                        "id": part["toolCallId"],
                        "type": "function",
                        "function": {
                            "name": part["toolName"],
                            "arguments": json.dumps(part.get("args") or {}),
                        },
                    }
                    for part in content
                    if part.get("type") == "tool-call"
                ]
                if tool_calls:
                    entry["tool_calls"] = tool_calls
            converted.append(entry)
        elif role == "tool":
            for part in content or []:
                converted.append({
                    "role": "tool",
                    "tool_call_id": part.get("toolCallId"),
                    "content": json.dumps(part.get("result"), default=str),
                })
    return converted
