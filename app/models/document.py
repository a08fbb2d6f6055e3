"""Document and Suggestion SQLModel definitions.

A document version is the pair (id, created_at): saving the same id again
adds a newer version instead of overwriting the previous one.
"""
from datetime import datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from app.database import utc_now


class DocumentKind(str, Enum):
    TEXT = "text"
    CODE = "code"
    SEARCH = "search"


class Document(SQLModel, table=True):
    """
    One version of a document.

    Content is a full replacement of the previous version, never a diff.
    """
    __tablename__ = "document"

    id: str = Field(primary_key=True, max_length=64)
    created_at: datetime = Field(default_factory=utc_now, primary_key=True)
    title: str = Field(max_length=255)
    kind: DocumentKind = Field(default=DocumentKind.TEXT)
    content: str = Field(default="")
    user_id: str = Field(index=True, nullable=False)


class Suggestion(SQLModel, table=True):
    """
    Suggested edit bound to one document version.

    document_created_at must match the version the suggestion was generated
    from, else the suggestion is stale.
    """
    __tablename__ = "suggestion"

    id: str = Field(primary_key=True, max_length=64)
    document_id: str = Field(index=True, nullable=False)
    document_created_at: datetime = Field(nullable=False)
    original_text: str
    suggested_text: str
    description: str = Field(default="")
    is_resolved: bool = Field(default=False)
    user_id: str = Field(index=True, nullable=False)
    created_at: datetime = Field(default_factory=utc_now)
