"""Shared fixtures: in-memory database, scripted model provider, API client."""
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.ai.provider import StepFinish, TextDelta, ToolCall
from app.core.deps import get_db
from app.core.errors import UpstreamGenerationFailure
from app.database import build_engine, init_db, session_factory as make_session_factory
from app.main import app
from app.services.chat_service import ChatService
from app.services.orchestrator import TurnOrchestrator
from app.services.stream import DataStream
from app.tools.context import ToolContext


def text_step(*fragments: str) -> list[Any]:
    return [TextDelta(text=fragment) for fragment in fragments]


def tool_step(name: str, args: Any, call_id: str = "call-1", text: str = "") -> list[Any]:
    parts: list[Any] = [TextDelta(text=text)] if text else []
    parts.append(ToolCall(tool_call_id=call_id, tool_name=name, args=args))
    return parts


class FakeProvider:
    """
    Scripted stand-in for ModelProvider.

    Turn-loop calls (made with `messages`) consume `steps` in order, then
    repeat `default_step`. Document calls (made with `prompt`) stream
    `document_text`.
    """

    def __init__(
        self,
        steps: Optional[list[list[Any]]] = None,
        default_step: Optional[list[Any]] = None,
        document_text: Optional[list[str]] = None,
        code_snapshots: Optional[list[dict[str, Any]]] = None,
        elements: Optional[list[Any]] = None,
        objects: Optional[dict[str, list[Any]]] = None,
        title: str = "Pluie en haïku",
        fail_loop: bool = False,
    ):
        self.steps = list(steps or [])
        self.default_step = default_step if default_step is not None else text_step("D'accord.")
        self.document_text = document_text if document_text is not None else ["# Titre", "\n", "Corps"]
        self.code_snapshots = code_snapshots or []
        self.elements = elements or []
        self.objects = {key: list(value) for key, value in (objects or {}).items()}
        self.title = title
        self.fail_loop = fail_loop
        self.loop_calls: list[dict[str, Any]] = []
        self.document_calls: list[dict[str, Any]] = []
        self.element_calls = 0
        self.object_prompts: list[str] = []

    async def stream_text(self, model, system=None, messages=None, prompt=None, tools=None, prediction=None):
        if messages is not None:
            self.loop_calls.append({"model": model, "messages": list(messages), "tools": tools})
            if self.fail_loop:
                raise UpstreamGenerationFailure("provider unavailable")
            parts = self.steps.pop(0) if self.steps else self.default_step
            for part in parts:
                yield part
            has_calls = any(part.type == "tool-call" for part in parts)
            yield StepFinish(finish_reason="tool_calls" if has_calls else "stop")
            return

        self.document_calls.append({"system": system, "prompt": prompt, "prediction": prediction})
        for fragment in self.document_text:
            yield TextDelta(text=fragment)
        yield StepFinish(finish_reason="stop")

    async def stream_object(self, model, system, prompt, schema):
        self.document_calls.append({"system": system, "prompt": prompt, "prediction": None})
        for snapshot in self.code_snapshots:
            yield snapshot

    async def stream_elements(self, model, system, prompt, schema, limit=None):
        self.element_calls += 1
        for index, raw in enumerate(self.elements):
            if limit is not None and index >= limit:
                return
            yield schema.model_validate(raw)

    async def generate_object(self, model, prompt, schema, system=None):
        self.object_prompts.append(prompt)
        return schema.model_validate(self.objects[schema.__name__].pop(0))

    async def generate_text(self, model, system, prompt):
        return self.title


class FakeSearchClient:
    def __init__(self, results: Optional[list[dict[str, Any]]] = None):
        self.results = results if results is not None else [
            {"title": "Pluie", "url": "https://example.org/pluie", "content": "Il pleut."}
        ]
        self.queries: list[str] = []

    async def search(self, query, search_depth="basic", topic="general", **options):
        self.queries.append(query)
        return {"query": query, "answer": "Oui", "results": list(self.results)}


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    return engine


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def orchestrator(provider, session_factory, search_client):
    return TurnOrchestrator(
        provider=provider,
        chat_service=ChatService(provider),
        session_factory=session_factory,
        max_steps=5,
        search_client=search_client,
    )


@pytest.fixture
def stream():
    return DataStream()


@pytest.fixture
def tool_context(stream, provider, session_factory, search_client):
    return ToolContext(
        stream=stream,
        provider=provider,
        model="gpt-4o-mini",
        session_factory=session_factory,
        user_id="user-1",
        search_client=search_client,
    )


@pytest.fixture
def client(engine, orchestrator):
    def _get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.state.orchestrator = orchestrator
    # Lifespan is not entered: no real provider clients are created
    yield TestClient(app)
    app.dependency_overrides.clear()


def drain(stream: DataStream) -> list[dict[str, Any]]:
    """Return every record written so far without closing the stream."""
    records = []
    while not stream._queue.empty():
        records.append(stream._queue.get_nowait())
    return records


def auth(user_id: str = "user-1") -> dict[str, str]:
    return {"X-User-Id": user_id}
