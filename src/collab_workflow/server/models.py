"""Pydantic models for the REST server."""

from __future__ import annotations

from pydantic import BaseModel, Field

from collab_workflow.orchestrator.workflow.models import BatchTaskStatus, SessionType, WorkItemType


class CreateWorkItem(BaseModel):
    title: str = ""
    type: WorkItemType


class CreateSessionRequest(BaseModel):
    session_type: SessionType = SessionType.STRUCTURED
    work_items: list[CreateWorkItem] = Field(default_factory=list)


class CompleteSkillRequest(BaseModel):
    skill: str = Field(min_length=1)


class TaskStatusRequest(BaseModel):
    status: BatchTaskStatus


class ApiTransition(BaseModel):
    to: str
    condition: dict[str, object] | None = None


class ApiWorkflowState(BaseModel):
    id: str
    skill: str | None
    display_name: str
    phase: str
    transitions: list[ApiTransition]


class SkillCompletionResponse(BaseModel):
    next_skill: str | None
    state: str | None
    params: dict[str, int] = Field(default_factory=dict)
    action: str | None = None
