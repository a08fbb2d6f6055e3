"""Document and suggestion routes.

Provides:
- GET /api/document?id= - All versions of a document
- POST /api/document?id= - Save a new version
- PATCH /api/document?id= - Delete versions after a timestamp
- GET /api/suggestions?documentId= - Suggestions of a document
"""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlmodel import Session

from app.core.deps import get_current_user, get_db
from app.models.document import Document, DocumentKind, Suggestion
from app.services import document_service

router = APIRouter(prefix="/api", tags=["document"])


class DocumentSave(BaseModel):
    """Request model for saving a document version."""
    content: str
    title: str
    kind: DocumentKind = DocumentKind.TEXT


class DocumentRollback(BaseModel):
    """Request model for rolling a document back."""
    timestamp: datetime


def _require_user(current_user_id: Optional[str]) -> str:
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    return current_user_id


def _require_id(id: Optional[str]) -> str:
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ID manquant")
    return id


@router.get("/document", response_model=list[Document])
def get_document_versions(
    id: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[Document]:
    """
    Get every version of a document, oldest first.

    Raises:
        HTTPException: 400 if id is missing
        HTTPException: 401 if unauthenticated or not the owner
        HTTPException: 404 if the document has no versions
    """
    id = _require_id(id)
    user_id = _require_user(current_user_id)

    documents = document_service.get_documents_by_id(session, id)
    if not documents:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Non trouvé")
    if documents[0].user_id != user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    return documents


@router.post("/document", response_model=Document)
def save_document_version(
    request: DocumentSave,
    id: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> Document:
    """
    Save one new version of a document.

    Raises:
        HTTPException: 400 if id is missing
        HTTPException: 401 if unauthenticated or the id belongs to another user
    """
    id = _require_id(id)
    user_id = _require_user(current_user_id)

    existing = document_service.get_document_by_id(session, id)
    if existing is not None and existing.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")

    return document_service.save_document(
        session,
        id=id,
        title=request.title,
        kind=request.kind,
        content=request.content,
        user_id=user_id,
    )


@router.patch("/document", response_class=PlainTextResponse)
def rollback_document(
    request: DocumentRollback,
    id: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> str:
    """
    Delete all versions strictly after the given timestamp.

    Raises:
        HTTPException: 400 if id is missing
        HTTPException: 401 if unauthenticated or not the owner
        HTTPException: 404 if the document has no versions
    """
    id = _require_id(id)
    user_id = _require_user(current_user_id)

    documents = document_service.get_documents_by_id(session, id)
    if not documents:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Non trouvé")
    if documents[0].user_id != user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")

    timestamp = request.timestamp
    if timestamp.tzinfo is None:
        # Offset-less timestamps are read as UTC
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    document_service.delete_documents_after_timestamp(session, id, timestamp)
    return "Supprimé"


@router.get("/suggestions", response_model=list[Suggestion])
def get_suggestions(
    documentId: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[Suggestion]:
    """
    Get the suggestions of a document; empty list when there are none.

    Raises:
        HTTPException: 404 if documentId is missing
        HTTPException: 401 if unauthenticated or not the owner
    """
    if not documentId:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Non trouvé")
    user_id = _require_user(current_user_id)

    suggestions = document_service.get_suggestions_by_document_id(session, documentId)
    if not suggestions:
        return []
    if suggestions[0].user_id != user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    return suggestions
