"""Tool definition, agent definition and execution services.

All queries filter by user_id; a row owned by another user is reported as
absent. Name uniqueness per owner is enforced by the database and surfaced
as ConflictError.
"""
from typing import Any, Optional, Type, TypeVar
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, col, func, select

from app.ai.prompts import DEFAULT_AGENT_PROMPT
from app.core.errors import ConflictError, NotFoundError
from app.database import utc_now
from app.models.agent import AgentDefinition, Execution, ExecutionStatus, ToolDefinition
from app.services.orchestrator import TurnOrchestrator
from app.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

EXECUTION_FAILED_OUTPUT = "An error occurred during execution."

ModelT = TypeVar("ModelT", ToolDefinition, AgentDefinition)


def _commit(session: Session, row: SQLModel, label: str) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(f"A {label} with this name already exists") from e
    session.refresh(row)


def create_definition(session: Session, model: Type[ModelT], user_id: str, data: dict[str, Any]) -> ModelT:
    """
    Create a tool or agent definition owned by user_id.

    Raises:
        ConflictError: If the owner already has one with this name
    """
    row = model(**data, user_id=user_id)
    session.add(row)
    _commit(session, row, _label(model))
    return row


def get_definition(session: Session, model: Type[ModelT], user_id: str, id: str) -> ModelT:
    """
    Raises:
        NotFoundError: If absent or owned by another user
    """
    row = session.exec(select(model).where(model.id == id, model.user_id == user_id)).first()
    if row is None:
        raise NotFoundError(f"{_label(model).capitalize()} {id} not found")
    return row


def update_definition(
    session: Session,
    model: Type[ModelT],
    user_id: str,
    id: str,
    data: dict[str, Any],
) -> ModelT:
    """
    Apply a partial update.

    Raises:
        NotFoundError: If absent or owned by another user
        ConflictError: If the new name is taken
    """
    row = get_definition(session, model, user_id, id)
    for key, value in data.items():
        setattr(row, key, value)
    session.add(row)
    _commit(session, row, _label(model))
    return row


def delete_definition(session: Session, model: Type[ModelT], user_id: str, id: str) -> ModelT:
    row = get_definition(session, model, user_id, id)
    session.delete(row)
    session.commit()
    return row


def list_definitions(
    session: Session,
    model: Type[ModelT],
    user_id: str,
    page: int = 1,
    page_size: int = 10,
    search: Optional[str] = None,
) -> dict[str, Any]:
    """
    List one page of the owner's definitions, optionally filtered by name.

    Returns:
        {"items": [...], "total": n, "page": page, "pageSize": page_size}
    """
    page = max(page, 1)
    page_size = max(page_size, 1)

    statement = select(model).where(model.user_id == user_id)
    count_statement = select(func.count()).select_from(model).where(model.user_id == user_id)
    if search:
        statement = statement.where(col(model.name).ilike(f"%{search}%"))
        count_statement = count_statement.where(col(model.name).ilike(f"%{search}%"))

    items = session.exec(
        statement.order_by(model.name).offset((page - 1) * page_size).limit(page_size)
    ).all()
    total = session.exec(count_statement).one()
    return {"items": list(items), "total": total, "page": page, "pageSize": page_size}


def get_tools_by_ids(session: Session, user_id: str, ids: list[str]) -> list[ToolDefinition]:
    if not ids:
        return []
    statement = select(ToolDefinition).where(
        col(ToolDefinition.id).in_(ids),
        ToolDefinition.user_id == user_id,
    )
    return list(session.exec(statement).all())


def _label(model: Type[SQLModel]) -> str:
    return "tool" if model is ToolDefinition else "agent"


def _start_execution(
    session: Session,
    user_id: str,
    agent_id: str,
    input: str,
) -> tuple[Execution, str, ToolRegistry]:
    agent = get_definition(session, AgentDefinition, user_id, agent_id)
    system = agent.prompt or DEFAULT_AGENT_PROMPT
    registry = ToolRegistry.from_definitions(get_tools_by_ids(session, user_id, agent.tools))

    execution = Execution(agent_id=agent.id, input=input, status=ExecutionStatus.STARTED, user_id=user_id)
    session.add(execution)
    session.commit()
    session.refresh(execution)
    return execution, system, registry


def _finish_execution(session: Session, execution: Execution) -> Execution:
    execution.completed_at = utc_now()
    session.add(execution)
    session.commit()
    session.refresh(execution)
    return execution


async def execute_agent(
    session: Session,
    orchestrator: TurnOrchestrator,
    user_id: str,
    agent_id: str,
    input: str,
    model: str,
) -> tuple[Execution, list[dict[str, Any]]]:
    """
    Run an agent over `input` with its tools.

    The Execution row is created as started, then completed with the final
    text or failed with a placeholder output when the model call fails.

    Returns:
        Tuple of (execution, steps)

    Raises:
        NotFoundError: If the agent is absent or owned by another user
    """
    execution, system, registry = await run_in_threadpool(_start_execution, session, user_id, agent_id, input)
    execution_id = execution.id

    result = await orchestrator.run_loop(
        model=model,
        system=system,
        messages=[{"role": "user", "content": input}],
        registry=registry,
        user_id=user_id,
    )

    if result.error is not None:
        logger.error(f"Error during execution {execution_id}: {str(result.error)}")
        execution.status = ExecutionStatus.FAILED
        execution.output = EXECUTION_FAILED_OUTPUT
    else:
        execution.status = ExecutionStatus.COMPLETED
        execution.output = result.text
    execution = await run_in_threadpool(_finish_execution, session, execution)
    return execution, result.steps
