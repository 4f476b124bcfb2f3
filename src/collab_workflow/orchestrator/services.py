"""Wire the store, document source, synchronizer and driver from settings."""

from __future__ import annotations

from dataclasses import dataclass

from collab_workflow.orchestrator.config import CollabSettings
from collab_workflow.orchestrator.planning.task_documents import FileTaskDocuments
from collab_workflow.orchestrator.planning.task_sync import BatchSynchronizer
from collab_workflow.orchestrator.session_store import SessionStore
from collab_workflow.orchestrator.workflow.driver import WorkflowDriver
from collab_workflow.orchestrator.workflow.registry import get_registry


@dataclass(frozen=True, slots=True)
class WorkflowServices:
    store: SessionStore
    documents: FileTaskDocuments
    synchronizer: BatchSynchronizer
    driver: WorkflowDriver


def build_services(settings: CollabSettings) -> WorkflowServices:
    store = SessionStore(settings.sessions_dir)
    documents = FileTaskDocuments(store)
    synchronizer = BatchSynchronizer(store=store, documents=documents)
    driver = WorkflowDriver(
        store,
        synchronizer,
        get_registry(settings.workflow_topology),
        max_routing_steps=settings.max_routing_steps,
    )
    return WorkflowServices(
        store=store, documents=documents, synchronizer=synchronizer, driver=driver
    )
