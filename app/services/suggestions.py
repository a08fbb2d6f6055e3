"""Suggestion generation for a stored document."""
from typing import Any, Optional
import logging

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from app.ai.prompts import SUGGESTIONS_PROMPT
from app.database import utc_now
from app.models.document import Document, Suggestion
from app.services import document_service
from app.services.chat_service import generate_id
from app.services.drafts import DOCUMENT_NOT_FOUND
from app.tools.context import ToolContext

logger = logging.getLogger(__name__)


class SuggestionDraft(BaseModel):
    originalSentence: str = Field(description="La phrase d'origine")
    suggestedSentence: str = Field(description="La phrase suggérée")
    description: str = Field(description="La description de la suggestion")


def _load_document(context: ToolContext, document_id: str) -> Optional[Document]:
    with context.session_factory() as session:
        return document_service.get_document_by_id(session, document_id, user_id=context.user_id)


def _save_batch(context: ToolContext, suggestions: list[Suggestion]) -> None:
    with context.session_factory() as session:
        document_service.save_suggestions(session, suggestions)


async def request_suggestions(context: ToolContext, document_id: str) -> dict[str, Any]:
    """
    Stream writing suggestions for the caller's document and store them.

    The batch is bound to the version read before generation, so a newer
    version saved meanwhile leaves these suggestions stale.
    """
    if not context.user_id:
        return dict(DOCUMENT_NOT_FOUND)
    document = await run_in_threadpool(_load_document, context, document_id)
    if document is None or not document.content:
        return dict(DOCUMENT_NOT_FOUND)

    document_created_at = document.created_at
    suggestions: list[dict[str, Any]] = []

    async for element in context.provider.stream_elements(
        model=context.model,
        system=SUGGESTIONS_PROMPT,
        prompt=document.content,
        schema=SuggestionDraft,
        limit=context.max_suggestions,
    ):
        suggestion = {
            "id": generate_id(),
            "documentId": document_id,
            "originalText": element.originalSentence,
            "suggestedText": element.suggestedSentence,
            "description": element.description,
            "isResolved": False,
        }
        context.stream.write_data("suggestion", suggestion)
        suggestions.append(suggestion)
    context.stream.write_data("finish", "")

    batch = [
        Suggestion(
            id=suggestion["id"],
            document_id=document_id,
            document_created_at=document_created_at,
            original_text=suggestion["originalText"],
            suggested_text=suggestion["suggestedText"],
            description=suggestion["description"],
            is_resolved=False,
            user_id=context.user_id,
            created_at=utc_now(),
        )
        for suggestion in suggestions
    ]
    try:
        await run_in_threadpool(_save_batch, context, batch)
    except SQLAlchemyError as e:
        logger.error(f"Failed to save suggestions for document {document_id}: {str(e)}")

    return {
        "id": document_id,
        "title": document.title,
        "kind": document.kind.value,
        "message": "Des suggestions ont été ajoutées au document",
    }
