"""Document and suggestion persistence.

Documents are versioned by (id, created_at): every save adds a version and
reads return versions oldest first. All lookups made on behalf of a caller
filter by user_id.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from app.database import utc_now
from app.models.document import Document, DocumentKind, Suggestion


def save_document(
    session: Session,
    id: str,
    title: str,
    kind: DocumentKind,
    content: str,
    user_id: str,
) -> Document:
    """
    Store a new version of a document.

    Returns:
        The stored version, its created_at is the version timestamp
    """
    document = Document(
        id=id,
        title=title,
        kind=DocumentKind(kind),
        content=content or "",
        user_id=user_id,
        created_at=utc_now(),
    )
    session.add(document)
    session.commit()
    session.refresh(document)
    return document


def get_documents_by_id(session: Session, id: str) -> list[Document]:
    """Get all versions of a document in chronological order."""
    statement = select(Document).where(Document.id == id).order_by(Document.created_at)
    return list(session.exec(statement).all())


def get_document_by_id(
    session: Session,
    id: str,
    user_id: Optional[str] = None,
) -> Optional[Document]:
    """
    Get the latest version of a document.

    When user_id is given, documents owned by another user are treated as
    absent.
    """
    statement = select(Document).where(Document.id == id)
    if user_id is not None:
        statement = statement.where(Document.user_id == user_id)
    statement = statement.order_by(Document.created_at.desc())
    return session.exec(statement).first()


def delete_documents_after_timestamp(session: Session, id: str, timestamp: datetime) -> int:
    """
    Roll a document back to `timestamp`.

    Deletes versions strictly newer than the timestamp, along with the
    suggestions bound to those versions.

    Returns:
        Number of document versions deleted
    """
    session.execute(
        delete(Suggestion).where(
            Suggestion.document_id == id,
            Suggestion.document_created_at > timestamp,
        )
    )
    result = session.execute(
        delete(Document).where(
            Document.id == id,
            Document.created_at > timestamp,
        )
    )
    session.commit()
    return result.rowcount


def save_suggestions(session: Session, suggestions: list[Suggestion]) -> list[Suggestion]:
    """Store a batch of suggestions in one commit."""
    for suggestion in suggestions:
        session.add(suggestion)
    session.commit()
    for suggestion in suggestions:
        session.refresh(suggestion)
    return suggestions


def get_suggestions_by_document_id(session: Session, document_id: str) -> list[Suggestion]:
    statement = select(Suggestion).where(
        Suggestion.document_id == document_id,
    ).order_by(Suggestion.created_at)
    return list(session.exec(statement).all())
