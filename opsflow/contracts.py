"""Core data contracts for opsflow requests, operations and workflows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]
WorkflowType = Literal["frontend", "backend", "fullstack", "api", "data"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Status(str, Enum):
    """Lifecycle status shared by operations, workflows and steps."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.FAILED, Status.CANCELLED})


class RequestOptions(BaseModel):
    """Per-call options for ``RequestClient.request``.

    ``retries`` and ``timeout`` (milliseconds) override the client-wide
    configuration when set. ``request_id`` is the identity under which the
    in-flight attempt can be cancelled.
    """

    model_config = ConfigDict(frozen=True)

    method: HttpMethod = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    retries: Optional[int] = Field(default=None, ge=0)
    timeout: Optional[int] = Field(default=None, gt=0)
    request_id: Optional[str] = None


class Operation(BaseModel):
    """A tracked asynchronous unit of work."""

    id: str
    name: str
    description: str = ""
    category: str = "system"
    status: Status = Status.PENDING
    progress: int = 0
    logs: List[str] = Field(default_factory=list)
    result: Any = None
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class StepDefinition(BaseModel):
    """Template entry describing one workflow step."""

    id: str
    name: str
    description: str = ""


class WorkflowStep(StepDefinition):
    """Runtime state of one step within a workflow."""

    status: Status = Status.PENDING
    output: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class WorkflowResult(BaseModel):
    deploy_url: Optional[str] = None
    artifacts: List[str] = Field(default_factory=list)


class Workflow(BaseModel):
    """An ordered sequence of steps executed as a single unit."""

    id: str
    name: str
    description: str = ""
    type: WorkflowType
    status: Status = Status.PENDING
    steps: List[WorkflowStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    result: Optional[WorkflowResult] = None

    def step(self, step_id: str) -> Optional[WorkflowStep]:
        """Return the step with ``step_id`` if present."""
        return next((s for s in self.steps if s.id == step_id), None)


class WorkflowTemplate(BaseModel):
    """Catalog entry from which workflows are instantiated."""

    id: str
    name: str
    description: str = ""
    type: WorkflowType
    steps: List[StepDefinition] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


def new_operation_id() -> str:
    return f"op_{int(utcnow().timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def new_workflow_id() -> str:
    return f"wf-{int(utcnow().timestamp() * 1000)}-{uuid.uuid4().hex[:6]}"
