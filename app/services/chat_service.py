"""Chat service layer.

Handles:
- Chat creation with a generated title, ownership checks and deletion
- Message storage (user, assistant and tool messages)
- Votes on assistant messages
"""
from typing import Any, Optional
from uuid import uuid4
import json
import logging

from sqlalchemy import delete
from sqlmodel import Session, func, select

from app.ai.messages import message_text
from app.ai.prompts import TITLE_PROMPT
from app.ai.provider import ModelProvider
from app.core.errors import NotFoundError, UnauthorizedError
from app.database import utc_now
from app.models.conversation import Chat, ChatSummary, Message, Vote

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80


def generate_id() -> str:
    return str(uuid4())


class ChatService:
    """Service layer for chat persistence."""

    def __init__(self, provider: Optional[ModelProvider] = None, title_model: str = "gpt-4o-mini"):
        """Initialize chat service."""
        self.provider = provider
        self.title_model = title_model

    def get_chat_by_id(self, session: Session, chat_id: str) -> Optional[Chat]:
        return session.get(Chat, chat_id)

    def check_chat_owner(self, session: Session, chat_id: str, user_id: str) -> Optional[Chat]:
        """
        Return the chat if it exists and is owned by user_id.

        Returns:
            Chat instance, or None when the chat does not exist yet

        Raises:
            UnauthorizedError: If the chat belongs to another user
        """
        chat = self.get_chat_by_id(session, chat_id)
        if chat is not None and chat.user_id != user_id:
            raise UnauthorizedError(f"Chat {chat_id} not owned by user")
        return chat

    async def generate_title_from_user_message(self, message: dict[str, Any]) -> str:
        """
        Summarize the first user message into a short chat title.

        Falls back to the start of the message text when no provider is set.
        """
        text = message_text(message.get("content"))
        if self.provider is None:
            return text[:MAX_TITLE_LENGTH] or "Nouvelle conversation"

        title = await self.provider.generate_text(
            model=self.title_model,
            system=TITLE_PROMPT,
            prompt=json.dumps(message, default=str),
        )
        return title.strip().strip('"')[:MAX_TITLE_LENGTH] or text[:MAX_TITLE_LENGTH]

    def save_chat(self, session: Session, chat_id: str, user_id: str, title: str) -> Chat:
        chat = Chat(id=chat_id, user_id=user_id, title=title)
        session.add(chat)
        session.commit()
        session.refresh(chat)
        return chat

    def store_message(
        self,
        session: Session,
        chat_id: str,
        role: str,
        content: Any,
        message_id: Optional[str] = None,
    ) -> Message:
        """
        Store one message in the database.

        Args:
            session: Database session
            chat_id: Chat ID
            role: "user", "assistant" or "tool"
            content: Text or list of structured parts
            message_id: Server-assigned id, generated when omitted

        Returns:
            Stored Message instance
        """
        message = Message(
            id=message_id or generate_id(),
            chat_id=chat_id,
            role=role,
            content=content,
            created_at=utc_now(),
        )
        session.add(message)
        session.commit()
        session.refresh(message)
        return message

    def store_messages(self, session: Session, messages: list[Message]) -> list[Message]:
        """Store a batch of already identified messages in one commit."""
        for message in messages:
            session.add(message)
        session.commit()
        return messages

    def get_messages_by_chat_id(self, session: Session, chat_id: str) -> list[Message]:
        """Get all messages in a chat in chronological order."""
        statement = select(Message).where(
            Message.chat_id == chat_id,
        ).order_by(Message.created_at)
        return list(session.exec(statement).all())

    def get_chats_by_user_id(self, session: Session, user_id: str) -> list[ChatSummary]:
        """List a user's chats, newest first, with their message counts."""
        statement = (
            select(Chat, func.count(Message.id))
            .join(Message, Message.chat_id == Chat.id, isouter=True)
            .where(Chat.user_id == user_id)
            .group_by(Chat.id)
            .order_by(Chat.created_at.desc())
        )
        return [
            ChatSummary(
                id=chat.id,
                title=chat.title,
                created_at=chat.created_at,
                message_count=count,
            )
            for chat, count in session.exec(statement).all()
        ]

    def delete_chat_by_id(self, session: Session, chat_id: str, user_id: str) -> None:
        """
        Delete a chat with its votes and messages.

        Raises:
            NotFoundError: If the chat does not exist
            UnauthorizedError: If the chat belongs to another user
        """
        chat = self.get_chat_by_id(session, chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")
        if chat.user_id != user_id:
            raise UnauthorizedError(f"Chat {chat_id} not owned by user")

        session.execute(delete(Vote).where(Vote.chat_id == chat_id))
        session.execute(delete(Message).where(Message.chat_id == chat_id))
        session.delete(chat)
        session.commit()

    def vote_message(self, session: Session, chat_id: str, message_id: str, type: str) -> Vote:
        """Record an up or down vote, replacing any earlier vote."""
        vote = session.get(Vote, (chat_id, message_id))
        if vote is None:
            vote = Vote(chat_id=chat_id, message_id=message_id, is_upvoted=type == "up")
        else:
            vote.is_upvoted = type == "up"
        session.add(vote)
        session.commit()
        session.refresh(vote)
        return vote

    def get_votes_by_chat_id(self, session: Session, chat_id: str) -> list[Vote]:
        statement = select(Vote).where(Vote.chat_id == chat_id)
        return list(session.exec(statement).all())
