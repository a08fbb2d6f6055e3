"""Turn orchestration.

One inbound turn goes through:
1. begin_turn: validate the request, create the chat on first use, store
   the user message
2. run_loop: call the model with history and tools, run the requested tool
   calls, fold their results back in, repeat up to max_steps
3. finish: store the sanitized response messages and close the stream

The same bounded loop runs agent executions, without a stream.
"""
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Optional
import logging

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.ai.messages import (
    get_most_recent_user_message,
    normalize_client_messages,
    sanitize_response_messages,
)
from app.ai.models import ChatModel, find_model
from app.ai.prompts import SYSTEM_PROMPT
from app.ai.provider import ModelProvider
from app.core.errors import (
    InvalidInputError,
    InvalidToolArguments,
    NotFoundError,
    UnknownTool,
    UpstreamGenerationFailure,
)
from app.database import utc_now
from app.models.conversation import Message
from app.services.chat_service import ChatService, generate_id
from app.services.stream import DataStream
from app.tools.context import ToolContext
from app.tools.definitions import build_chat_registry
from app.tools.registry import ToolRegistry
from app.tools.search_engine import TavilySearchClient

logger = logging.getLogger(__name__)


@dataclass
class LoopResult:
    """Outcome of one bounded tool loop."""
    response_messages: list[dict[str, Any]] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)
    text: str = ""
    finish_reason: Optional[str] = None
    error: Optional[Exception] = None


@dataclass
class PreparedTurn:
    """A validated turn whose user message is already stored."""
    chat_id: str
    user_id: str
    model: ChatModel
    messages: list[dict[str, Any]]
    user_message_id: str


class TurnOrchestrator:
    """Runs chat turns and agent executions against the model provider."""

    def __init__(
        self,
        provider: ModelProvider,
        chat_service: ChatService,
        session_factory: Callable[[], Session],
        max_steps: int = 5,
        http_client: Optional[httpx.AsyncClient] = None,
        search_client: Optional[TavilySearchClient] = None,
        search_model: str = "gpt-4-turbo",
        weather_url: str = "https://api.open-meteo.com/v1/forecast",
        max_suggestions: int = 5,
    ):
        self.provider = provider
        self.chat_service = chat_service
        self.session_factory = session_factory
        self.max_steps = max_steps
        self.http_client = http_client
        self.search_client = search_client
        self.search_model = search_model
        self.weather_url = weather_url
        self.max_suggestions = max_suggestions

    async def begin_turn(
        self,
        session: Session,
        chat_id: str,
        user_id: str,
        model_id: str,
        messages: list[dict[str, Any]],
    ) -> PreparedTurn:
        """
        Validate a turn and store its user message.

        Raises:
            NotFoundError: If the model id is unknown
            InvalidInputError: If there is no user message
            UnauthorizedError: If the chat belongs to another user
        """
        model = find_model(model_id)
        if model is None:
            raise NotFoundError("Model not found")

        core_messages = normalize_client_messages(messages)
        user_message = get_most_recent_user_message(core_messages)
        if user_message is None:
            raise InvalidInputError("No user message found")

        chat = await run_in_threadpool(self.chat_service.check_chat_owner, session, chat_id, user_id)
        if chat is None:
            try:
                title = await self.chat_service.generate_title_from_user_message(user_message)
            except UpstreamGenerationFailure as e:
                logger.warning(f"Title generation failed for chat {chat_id}: {str(e)}")
                title = str(user_message.get("content"))[:80]
            await run_in_threadpool(self.chat_service.save_chat, session, chat_id, user_id, title)

        user_message_id = generate_id()
        await run_in_threadpool(
            self.chat_service.store_message,
            session,
            chat_id,
            role="user",
            content=user_message["content"],
            message_id=user_message_id,
        )
        logger.info(f"Turn accepted: user={user_id}, chat={chat_id}, message_id={user_message_id}")

        return PreparedTurn(
            chat_id=chat_id,
            user_id=user_id,
            model=model,
            messages=core_messages,
            user_message_id=user_message_id,
        )

    def build_context(self, stream: DataStream, model: ChatModel, user_id: Optional[str]) -> ToolContext:
        return ToolContext(
            stream=stream,
            provider=self.provider,
            model=model.api_identifier,
            session_factory=self.session_factory,
            user_id=user_id,
            http_client=self.http_client,
            search_client=self.search_client,
            search_model=self.search_model,
            weather_url=self.weather_url,
            max_suggestions=self.max_suggestions,
        )

    async def stream_turn(self, stream: DataStream, turn: PreparedTurn) -> None:
        """Run the tool loop for a prepared turn, writing events to `stream`."""
        stream.write_data("user-message-id", turn.user_message_id)

        registry = build_chat_registry(self.build_context(stream, turn.model, turn.user_id))
        result = await self.run_loop(
            model=turn.model.api_identifier,
            system=SYSTEM_PROMPT,
            messages=turn.messages,
            registry=registry,
            stream=stream,
            user_id=turn.user_id,
        )
        if result.error is not None:
            stream.write_data("error", "An error occurred while generating the response")

        await self.save_response_messages(stream, turn.chat_id, turn.user_id, result.response_messages)
        stream.write_data("finish", {"finishReason": result.finish_reason or "stop"})

    async def run_loop(
        self,
        model: str,
        system: str,
        messages: list[dict[str, Any]],
        registry: ToolRegistry,
        stream: Optional[DataStream] = None,
        user_id: Optional[str] = None,
    ) -> LoopResult:
        """
        Call the model and resolve tool calls until it stops asking for tools.

        At most max_steps model calls are made; reaching the bound is not an
        error. An upstream failure stops the loop and is returned in
        `error` together with whatever was produced before it.
        """
        history = list(messages)
        result = LoopResult()
        tools = registry.get_tool_schemas()

        for step in range(1, self.max_steps + 1):
            text = ""
            calls = []
            finish_reason = None
            try:
                async for part in self.provider.stream_text(
                    model=model,
                    system=system,
                    messages=history,
                    tools=tools,
                ):
                    if part.type == "text-delta":
                        text += part.text
                        if stream is not None:
                            stream.write_data("text-delta", part.text)
                    elif part.type == "tool-call":
                        calls.append(part)
                        if stream is not None:
                            stream.write_data("tool-call", {
                                "toolCallId": part.tool_call_id,
                                "toolName": part.tool_name,
                                "args": part.args,
                            })
                    elif part.type == "step-finish":
                        finish_reason = part.finish_reason
            except UpstreamGenerationFailure as e:
                logger.error(f"Model call failed at step {step} for user {user_id}: {str(e)}")
                result.error = e
                result.finish_reason = "error"
                return result

            content: list[dict[str, Any]] = []
            if text:
                content.append({"type": "text", "text": text})
            content.extend(
                {
                    "type": "tool-call",
                    "toolCallId": call.tool_call_id,
                    "toolName": call.tool_name,
                    "args": call.args if isinstance(call.args, dict) else {},
                }
                for call in calls
            )
            assistant_message = {"role": "assistant", "content": content}
            history.append(assistant_message)
            result.response_messages.append(assistant_message)
            result.text = text
            result.finish_reason = finish_reason

            if not calls:
                result.steps.append({"stepType": step, "text": text, "toolCalls": [], "toolResults": []})
                break

            tool_results = []
            for call in calls:
                output = await self._execute_tool_call(registry, call, user_id)
                tool_results.append({
                    "type": "tool-result",
                    "toolCallId": call.tool_call_id,
                    "toolName": call.tool_name,
                    "result": output,
                })
                if stream is not None:
                    stream.write_data("tool-result", {"toolCallId": call.tool_call_id, "result": output})

            tool_message = {"role": "tool", "content": tool_results}
            history.append(tool_message)
            result.response_messages.append(tool_message)
            result.steps.append({
                "stepType": step,
                "text": text,
                "toolCalls": content[1:] if text else content,
                "toolResults": tool_results,
            })
        else:
            logger.info(f"Step bound of {self.max_steps} reached for user {user_id}")

        return result

    async def _execute_tool_call(self, registry: ToolRegistry, call: Any, user_id: Optional[str]) -> Any:
        """
        Run one tool call; failures become a structured error for the model.
        """
        try:
            output = await registry.call_tool(call.tool_name, call.args)
            logger.debug(f"Tool executed: user={user_id}, tool={call.tool_name}")
            return output
        except (UnknownTool, InvalidToolArguments) as e:
            logger.warning(f"Tool dispatch failed for user {user_id}: {str(e)}")
            return {"error": str(e)}
        except Exception as e:
            logger.error(f"Tool execution error in {call.tool_name} for user {user_id}: {str(e)}")
            return {"error": str(e)}

    async def save_response_messages(
        self,
        stream: DataStream,
        chat_id: str,
        user_id: str,
        response_messages: list[dict[str, Any]],
    ) -> None:
        """
        Store the turn's response messages with fresh ids.

        Each assistant message id is announced on the stream. A failed save
        is logged and does not affect the stream.
        """
        base_time = utc_now()
        records = []
        for index, message in enumerate(sanitize_response_messages(response_messages)):
            message_id = generate_id()
            if message["role"] == "assistant":
                stream.write_message_annotation({"messageIdFromServer": message_id})
            records.append(Message(
                id=message_id,
                chat_id=chat_id,
                role=message["role"],
                content=message["content"],
                created_at=base_time + timedelta(microseconds=index),
            ))
        if not records:
            return

        try:
            await run_in_threadpool(self._store_messages, records)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save chat {chat_id} for user {user_id}: {str(e)}")

    def _store_messages(self, records: list[Message]) -> None:
        with self.session_factory() as session:
            self.chat_service.store_messages(session, records)
