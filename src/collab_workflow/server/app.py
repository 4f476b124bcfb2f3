"""FastAPI app factory.

Endpoints are thin wrappers over the orchestrator services; every decision is
made by the workflow driver and the batch synchronizer.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from collab_workflow import __version__
from collab_workflow.orchestrator.planning.task_diagram import generate_task_diagram
from collab_workflow.orchestrator.planning.task_graph import (
    CyclicDependency,
    TaskGraphInternalError,
    TaskGraphParseError,
)
from collab_workflow.orchestrator.planning.task_sync import NoTasksFound
from collab_workflow.orchestrator.services import build_services
from collab_workflow.orchestrator.workflow.lifecycle import InvalidTransition
from collab_workflow.orchestrator.workflow.models import WorkItem
from collab_workflow.orchestrator.workflow.registry import (
    display_name,
    get_registry,
    phase_for_state,
)
from collab_workflow.orchestrator.workflow.transitions import RoutingLoopError
from collab_workflow.server.config import ServerSettings
from collab_workflow.server.models import (
    ApiTransition,
    ApiWorkflowState,
    CompleteSkillRequest,
    CreateSessionRequest,
    SkillCompletionResponse,
    TaskStatusRequest,
)

logger = logging.getLogger(__name__)

_CONFLICT_ERRORS: tuple[type[Exception], ...] = (
    InvalidTransition,
    CyclicDependency,
    TaskGraphParseError,
    RoutingLoopError,
    NoTasksFound,
)


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    settings = settings or ServerSettings()
    services = build_services(settings)

    app = FastAPI(
        title="Collab Workflow",
        version=__version__,
        description="REST API over the collab workflow engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Most specific handler wins, so rule violations beat the generic ValueError.
    for error_type in _CONFLICT_ERRORS:

        @app.exception_handler(error_type)
        def _conflict(_request: Request, exc: Exception) -> JSONResponse:
            logger.warning(str(exc), extra={"error": type(exc).__name__})
            return _error_response(409, exc)

    @app.exception_handler(LookupError)
    def _not_found(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(404, exc)

    @app.exception_handler(ValueError)
    def _unprocessable(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(422, exc)

    @app.exception_handler(TaskGraphInternalError)
    def _internal(_request: Request, exc: Exception) -> JSONResponse:
        logger.error(str(exc))
        return _error_response(500, exc)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__, "topology": settings.workflow_topology}

    @app.get("/api/workflow/states", response_model=list[ApiWorkflowState])
    def list_states(topology: str | None = None) -> list[ApiWorkflowState]:
        registry = get_registry(topology or settings.workflow_topology)
        return [
            ApiWorkflowState(
                id=state.id,
                skill=state.skill,
                display_name=display_name(state.id),
                phase=phase_for_state(state.id),
                transitions=[
                    ApiTransition(
                        to=t.to,
                        condition=t.condition.to_json() if t.condition else None,
                    )
                    for t in state.transitions
                ],
            )
            for state in registry.states()
        ]

    @app.get("/api/sessions")
    def list_sessions() -> list[str]:
        return services.store.list_sessions()

    @app.post("/api/sessions/{session}", status_code=201)
    def create_session(session: str, req: CreateSessionRequest) -> dict[str, object]:
        if services.store.exists(session):
            raise HTTPException(status_code=409, detail=f"Session already exists: {session}")
        items = [
            WorkItem(number=n, title=item.title, type=item.type)
            for n, item in enumerate(req.work_items, start=1)
        ]
        record = services.store.create(session, session_type=req.session_type, work_items=items)
        return record.to_json()

    @app.get("/api/sessions/{session}/state")
    def get_session_state(session: str) -> dict[str, object]:
        return services.store.load(session).to_json()

    @app.post("/api/sessions/{session}/complete-skill", response_model=SkillCompletionResponse)
    def complete_skill(session: str, req: CompleteSkillRequest) -> SkillCompletionResponse:
        result = services.driver.complete_skill(session, req.skill)
        return SkillCompletionResponse.model_validate(result.to_json())

    @app.get("/api/sessions/{session}/next-state", response_model=SkillCompletionResponse)
    def next_state(session: str) -> SkillCompletionResponse:
        result = services.driver.preview_next_state(session)
        return SkillCompletionResponse.model_validate(result.to_json())

    @app.post("/api/sessions/{session}/sync-tasks")
    def sync_tasks(session: str) -> dict[str, object]:
        return services.synchronizer.sync(session).to_json()

    @app.get("/api/sessions/{session}/task-graph", response_model=None)
    def task_graph(session: str, diagram: bool = False) -> PlainTextResponse | list[object]:
        batches = services.store.load(session).batches
        if diagram:
            return PlainTextResponse(generate_task_diagram(batches))
        return [b.model_dump(mode="json", by_alias=True) for b in batches]

    @app.put("/api/sessions/{session}/tasks/{task_id}/status")
    def update_task_status(
        session: str, task_id: str, req: TaskStatusRequest
    ) -> dict[str, object]:
        return services.driver.update_task(session, task_id, req.status).to_json()

    return app
