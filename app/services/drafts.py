"""Document draft state machine.

A draft moves created -> generating -> finished. The document kind picks
the generation strategy:

- text:   free text is streamed; each fragment is appended to the draft
- code:   a {"code": ...} object is streamed; each snapshot replaces the draft
- search: findings from the research sub-flow become the prompt, then the
          draft is generated as text
"""
from enum import Enum
from typing import Any, Optional
import logging

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.ai.prompts import (
    CODE_PROMPT,
    SEARCH_DOCUMENT_PROMPT,
    TEXT_DOCUMENT_PROMPT,
    update_document_prompt,
)
from app.ai.provider import ModelProvider
from app.models.document import Document, DocumentKind
from app.services import document_service
from app.services.chat_service import generate_id
from app.services.stream import DataStream
from app.tools.context import ToolContext
from app.tools.search_engine import TavilySearchClient, complete_search

logger = logging.getLogger(__name__)

DOCUMENT_NOT_FOUND = {"error": "Document non trouvé"}


class DraftState(str, Enum):
    CREATED = "created"
    GENERATING = "generating"
    FINISHED = "finished"


class CodeSnapshot(BaseModel):
    code: str


class DocumentDraft:
    """
    In-progress content of one document.

    Every change to the draft is forwarded to the stream as it happens; a
    `finish` record closes the draft's segment of the stream.
    """

    def __init__(
        self,
        document_id: str,
        title: str,
        kind: DocumentKind,
        stream: DataStream,
        provider: ModelProvider,
        model: str,
        search_client: Optional[TavilySearchClient] = None,
        search_model: Optional[str] = None,
    ):
        self.document_id = document_id
        self.title = title
        self.kind = DocumentKind(kind)
        self.stream = stream
        self.provider = provider
        self.model = model
        self.search_client = search_client
        self.search_model = search_model or model
        self.state = DraftState.CREATED
        self.content = ""
        self._strategies = {
            DocumentKind.TEXT: self._generate_text,
            DocumentKind.CODE: self._generate_code,
            DocumentKind.SEARCH: self._generate_search,
        }

    def announce(self) -> None:
        """Tell the client a new document is starting."""
        self.stream.write_data("id", self.document_id)
        self.stream.write_data("title", self.title)
        self.stream.write_data("kind", self.kind.value)

    def clear(self) -> None:
        self.stream.write_data("clear", self.title)

    def append(self, delta: str) -> None:
        self.content += delta
        self.stream.write_data("text-delta", delta)

    def replace(self, snapshot: str) -> None:
        self.content = snapshot
        self.stream.write_data("code-delta", snapshot)

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        prediction: Optional[str] = None,
        strategy: Optional[DocumentKind] = None,
    ) -> str:
        """
        Run the kind's strategy to completion and return the draft content.

        `finish` is written even when generation fails part way.

        Raises:
            RuntimeError: If the draft was already generated
        """
        if self.state != DraftState.CREATED:
            raise RuntimeError(f"Draft {self.document_id} is already {self.state.value}")

        self.state = DraftState.GENERATING
        try:
            await self._strategies[DocumentKind(strategy or self.kind)](prompt, system, prediction)
        finally:
            self.state = DraftState.FINISHED
            self.stream.write_data("finish", "")
        return self.content

    async def _generate_text(self, prompt: str, system: Optional[str], prediction: Optional[str]) -> None:
        async for part in self.provider.stream_text(
            model=self.model,
            system=system or TEXT_DOCUMENT_PROMPT,
            prompt=prompt,
            prediction=prediction,
        ):
            if part.type == "text-delta":
                self.append(part.text)

    async def _generate_code(self, prompt: str, system: Optional[str], prediction: Optional[str]) -> None:
        async for partial in self.provider.stream_object(
            model=self.model,
            system=system or CODE_PROMPT,
            prompt=prompt,
            schema=CodeSnapshot,
        ):
            code = partial.get("code")
            if code:
                self.replace(code)

    async def _generate_search(self, prompt: str, system: Optional[str], prediction: Optional[str]) -> None:
        if self.search_client is None:
            raise RuntimeError("Search-backed documents need a search client")
        findings = await complete_search(self.provider, self.search_client, self.search_model, prompt)
        await self._generate_text(findings, SEARCH_DOCUMENT_PROMPT, None)


def _save_version(context: ToolContext, draft: DocumentDraft) -> None:
    with context.session_factory() as session:
        document_service.save_document(
            session,
            id=draft.document_id,
            title=draft.title,
            kind=draft.kind,
            content=draft.content,
            user_id=context.user_id,
        )


async def _persist(context: ToolContext, draft: DocumentDraft) -> None:
    if not context.user_id:
        return
    try:
        await run_in_threadpool(_save_version, context, draft)
    except SQLAlchemyError as e:
        logger.error(f"Failed to save document {draft.document_id} for user {context.user_id}: {str(e)}")


def _load_document(context: ToolContext, id: str) -> Optional[Document]:
    with context.session_factory() as session:
        return document_service.get_document_by_id(session, id, user_id=context.user_id)


def _new_draft(context: ToolContext, document_id: str, title: str, kind: DocumentKind) -> DocumentDraft:
    return DocumentDraft(
        document_id=document_id,
        title=title,
        kind=kind,
        stream=context.stream,
        provider=context.provider,
        model=context.model,
        search_client=context.search_client,
        search_model=context.search_model,
    )


async def create_document(context: ToolContext, title: str, kind: DocumentKind) -> dict[str, Any]:
    """Generate a new document from its title and store its first version."""
    draft = _new_draft(context, generate_id(), title, kind)
    draft.announce()
    draft.clear()
    await draft.generate(title)
    await _persist(context, draft)

    return {
        "id": draft.document_id,
        "title": title,
        "kind": draft.kind.value,
        "content": "Un document a été créé et est maintenant visible à l'utilisateur.",
    }


async def update_document(context: ToolContext, id: str, description: str) -> dict[str, Any]:
    """
    Revise the caller's document following `description`.

    Documents that are missing or owned by another user are reported back
    to the model without any change.
    """
    if not context.user_id:
        return dict(DOCUMENT_NOT_FOUND)
    document = await run_in_threadpool(_load_document, context, id)
    if document is None:
        return dict(DOCUMENT_NOT_FOUND)

    current_content = document.content
    draft = _new_draft(context, document.id, document.title, document.kind)
    draft.clear()

    if draft.kind == DocumentKind.CODE:
        await draft.generate(description, system=update_document_prompt(current_content))
    else:
        # Search documents are revised like text: no new research round
        await draft.generate(
            description,
            system=update_document_prompt(current_content),
            prediction=current_content,
            strategy=DocumentKind.TEXT,
        )
    await _persist(context, draft)

    return {
        "id": document.id,
        "title": document.title,
        "kind": draft.kind.value,
        "content": "Le document a été mis à jour avec succès.",
    }
