"""Tool definition, agent definition and execution routes.

Provides:
- POST/GET/PUT/DELETE /api/tools - Tool definitions CRUD
- POST/GET/PUT/DELETE /api/agents - Agent definitions CRUD
- POST /api/execute - Run an agent over an input
"""
from typing import Any, Optional, Type
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session

from app.config import settings
from app.core.deps import get_current_user, get_db
from app.core.errors import ConflictError, NotFoundError
from app.models.agent import (
    AgentDefinition,
    AgentDefinitionCreate,
    AgentDefinitionUpdate,
    ExecutionStatus,
    ToolDefinition,
    ToolDefinitionCreate,
    ToolDefinitionUpdate,
)
from app.services import agent_service
from app.services.orchestrator import TurnOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["agents"])


class ExecuteRequest(BaseModel):
    """Request model for running an agent."""
    agentId: str
    input: str


def _require_user(current_user_id: Optional[str]) -> str:
    if current_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return current_user_id


def _require_id(id: Optional[str]) -> str:
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ID is required")
    return id


def _register_crud(
    path: str,
    model: Type[Any],
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
    label: str,
) -> None:
    """Register owner-scoped create/read/update/delete/list routes on `path`."""

    @router.post(path, response_model=model, name=f"create_{label}")
    def create(
        request: create_model,
        current_user_id: Optional[str] = Depends(get_current_user),
        session: Session = Depends(get_db),
    ):
        user_id = _require_user(current_user_id)
        try:
            return agent_service.create_definition(session, model, user_id, request.model_dump())
        except ConflictError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {label} with this name already exists",
            )

    @router.get(path, name=f"read_{label}")
    def read(
        id: Optional[str] = None,
        page: int = 1,
        pageSize: int = 10,
        search: Optional[str] = None,
        current_user_id: Optional[str] = Depends(get_current_user),
        session: Session = Depends(get_db),
    ):
        user_id = _require_user(current_user_id)
        if id:
            try:
                return agent_service.get_definition(session, model, user_id, id)
            except NotFoundError as e:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        return agent_service.list_definitions(session, model, user_id, page, pageSize, search)

    @router.put(path, response_model=model, name=f"update_{label}")
    def update(
        request: update_model,
        id: Optional[str] = None,
        current_user_id: Optional[str] = Depends(get_current_user),
        session: Session = Depends(get_db),
    ):
        id = _require_id(id)
        user_id = _require_user(current_user_id)
        try:
            return agent_service.update_definition(
                session, model, user_id, id, request.model_dump(exclude_unset=True)
            )
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except ConflictError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {label} with this name already exists",
            )

    @router.delete(path, response_model=model, name=f"delete_{label}")
    def delete(
        id: Optional[str] = None,
        current_user_id: Optional[str] = Depends(get_current_user),
        session: Session = Depends(get_db),
    ):
        id = _require_id(id)
        user_id = _require_user(current_user_id)
        try:
            return agent_service.delete_definition(session, model, user_id, id)
        except NotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


_register_crud("/tools", ToolDefinition, ToolDefinitionCreate, ToolDefinitionUpdate, "tool")
_register_crud("/agents", AgentDefinition, AgentDefinitionCreate, AgentDefinitionUpdate, "agent")


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator


@router.post("/execute")
async def execute(
    request: ExecuteRequest,
    current_user_id: Optional[str] = Depends(get_current_user),
    session: Session = Depends(get_db),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Run an agent with its tools over the input text.

    Returns:
        The execution record plus the loop steps; status 500 when the
        execution failed

    Raises:
        HTTPException: 401 if unauthenticated
        HTTPException: 404 if the agent is not found
    """
    user_id = _require_user(current_user_id)
    try:
        execution, steps = await agent_service.execute_agent(
            session,
            orchestrator,
            user_id=user_id,
            agent_id=request.agentId,
            input=request.input,
            model=settings.EXECUTION_MODEL,
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent not found")

    payload = execution.model_dump(mode="json")
    if execution.status == ExecutionStatus.FAILED:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
    payload["steps"] = jsonable_encoder(steps)
    return JSONResponse(content=payload)
