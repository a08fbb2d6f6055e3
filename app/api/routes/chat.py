"""Chat endpoint routes.

Provides:
- POST /api/chat - Submit a turn, response is an event stream
- DELETE /api/chat?id= - Delete a chat
- GET /api/history - List the caller's chats
"""
from typing import Any, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.config import settings
from app.core.deps import get_current_user, get_db
from app.core.errors import InvalidInputError, NotFoundError, UnauthorizedError
from app.models.conversation import ChatSummary
from app.services.orchestrator import TurnOrchestrator
from app.services.stream import run_data_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ChatRequest(BaseModel):
    """Request model for submitting a turn."""
    id: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    modelId: str


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator


@router.post("/chat")
async def submit_turn(
    request: ChatRequest,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """
    Submit one conversational turn.

    Flow:
    1. Verify the caller is authenticated
    2. Validate model and user message, check chat ownership
    3. Create the chat with a generated title on first use
    4. Store the user message
    5. Stream model output and tool side effects as server-sent events

    Raises:
        HTTPException: 401 if unauthenticated or chat owned by another user
        HTTPException: 404 if model is unknown
        HTTPException: 400 if no user message was sent
    """
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        turn = await orchestrator.begin_turn(
            session,
            chat_id=request.id,
            user_id=current_user_id,
            model_id=request.modelId,
            messages=request.messages,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UnauthorizedError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    return StreamingResponse(
        run_data_stream(
            lambda stream: orchestrator.stream_turn(stream, turn),
            timeout=settings.TURN_TIMEOUT,
        ),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )


@router.delete("/chat", response_class=PlainTextResponse)
def delete_chat(
    id: Optional[str] = None,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> str:
    """
    Delete a chat with its messages and votes.

    Raises:
        HTTPException: 404 if id is missing or the chat does not exist
        HTTPException: 401 if unauthenticated or not the owner
        HTTPException: 500 on persistence failure
    """
    if not id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        orchestrator.chat_service.delete_chat_by_id(session, id, current_user_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    except UnauthorizedError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    except SQLAlchemyError as e:
        logger.error(f"Failed to delete chat {id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while processing your request",
        )

    return "Chat deleted"


@router.get("/history", response_model=list[ChatSummary])
def list_chats(
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> list[ChatSummary]:
    """List the caller's chats, newest first."""
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return orchestrator.chat_service.get_chats_by_user_id(session, current_user_id)
