"""Vote routes.

Provides:
- GET /api/vote?chatId= - Votes of a chat
- PATCH /api/vote - Vote a message up or down
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlmodel import Session

from app.core.deps import get_current_user, get_db
from app.core.errors import UnauthorizedError
from app.models.conversation import Vote
from app.services.chat_service import ChatService

router = APIRouter(prefix="/api", tags=["vote"])


class VoteRequest(BaseModel):
    """Request model for voting; every field is required."""
    chatId: Optional[str] = None
    messageId: Optional[str] = None
    type: Optional[Literal["up", "down"]] = None


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.orchestrator.chat_service


@router.get("/vote", response_model=list[Vote])
def get_votes(
    chatId: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> list[Vote]:
    """
    Raises:
        HTTPException: 400 if chatId is missing
        HTTPException: 401 if unauthenticated or not the chat owner
    """
    if not chatId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="L’identifiant du chat est requis")
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    try:
        chat_service.check_chat_owner(session, chatId, current_user_id)
    except UnauthorizedError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    return chat_service.get_votes_by_chat_id(session, chatId)


@router.patch("/vote", response_class=PlainTextResponse)
def vote_message(
    request: VoteRequest,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    chat_service: ChatService = Depends(get_chat_service),
) -> str:
    """
    Raises:
        HTTPException: 400 if chatId, messageId or type is missing
        HTTPException: 401 if unauthenticated or not the chat owner
        HTTPException: 404 if the chat does not exist
    """
    if not request.chatId or not request.messageId or not request.type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="L’identifiant du message et le type sont requis",
        )
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    try:
        chat = chat_service.check_chat_owner(session, request.chatId, current_user_id)
    except UnauthorizedError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autorisé")
    if chat is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Non trouvé")

    chat_service.vote_message(session, request.chatId, request.messageId, request.type)
    return "Message voté"
