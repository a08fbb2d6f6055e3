"""ToolDefinition, AgentDefinition and Execution SQLModel definitions.

All three are scoped to one owning user; names are unique per owner.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.database import utc_now


def _new_id() -> str:
    return str(uuid4())


class ToolDefinition(SQLModel, table=True):
    """User-authored tool; parameters is untyped JSON describing its fields."""
    __tablename__ = "tool_definition"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tool_owner_name"),)

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    type: str = Field(default="function", max_length=50)
    description: Optional[str] = Field(default=None)
    parameters: Any = Field(default=None, sa_column=Column(JSON, nullable=True))
    user_id: str = Field(index=True, nullable=False)
    created_at: datetime = Field(default_factory=utc_now)


class AgentDefinition(SQLModel, table=True):
    """Agent: a system prompt plus the ids of the tools it may call."""
    __tablename__ = "agent_definition"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_agent_owner_name"),)

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    prompt: Optional[str] = Field(default=None)
    tools: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    user_id: str = Field(index=True, nullable=False)
    created_at: datetime = Field(default_factory=utc_now)


class ExecutionStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class Execution(SQLModel, table=True):
    """One run of an agent over an input text."""
    __tablename__ = "execution"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    agent_id: str = Field(index=True, nullable=False)
    input: str
    status: ExecutionStatus = Field(default=ExecutionStatus.STARTED)
    output: Optional[str] = Field(default=None)
    user_id: str = Field(index=True, nullable=False)
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = Field(default=None)


class ToolDefinitionCreate(SQLModel):
    name: str
    type: str = "function"
    description: Optional[str] = None
    parameters: Any = None


class ToolDefinitionUpdate(SQLModel):
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    parameters: Any = None


class AgentDefinitionCreate(SQLModel):
    name: str
    prompt: Optional[str] = None
    tools: list[str] = []


class AgentDefinitionUpdate(SQLModel):
    name: Optional[str] = None
    prompt: Optional[str] = None
    tools: Optional[list[str]] = None
