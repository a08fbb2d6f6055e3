"""Chat, Message and Vote SQLModel definitions.

Models:
- Chat: Conversation entity with fixed user ownership
- Message: One role-tagged turn in a chat, content is text or structured parts
- Vote: Up/down vote on one message of a chat
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.database import utc_now


class Chat(SQLModel, table=True):
    """
    Chat entity.

    Ownership: Each chat belongs to exactly one user via user_id, set at
    creation and checked on every mutating or deleting access.
    """
    __tablename__ = "chat"

    id: str = Field(primary_key=True, max_length=64)
    user_id: str = Field(index=True, nullable=False)
    title: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=utc_now)


class Message(SQLModel, table=True):
    """
    Message entity for chats.

    Role: "user", "assistant" or "tool"
    Content: plain text or a list of text / tool-call / tool-result parts.
    """
    __tablename__ = "message"

    id: str = Field(primary_key=True, max_length=64)
    chat_id: str = Field(foreign_key="chat.id", index=True, nullable=False)
    role: str = Field(max_length=20)
    content: Any = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now)


class Vote(SQLModel, table=True):
    """Vote on one message; (chat_id, message_id) is unique."""
    __tablename__ = "vote"

    chat_id: str = Field(foreign_key="chat.id", primary_key=True)
    message_id: str = Field(foreign_key="message.id", primary_key=True)
    is_upvoted: bool = Field(nullable=False)


class ChatSummary(SQLModel):
    """Response model for chat history listing."""
    id: str
    title: str
    created_at: datetime
    message_count: Optional[int] = None
