#!/usr/bin/env python3
"""Programmatic workflow example.

This drives one session through the engine without the CLI:

* load settings from `.env`
* create a session with a couple of work items
* report skill completions until the workflow asks for implementation
* print the execution batches planned from the work items

The session name is passed as an argument.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from collab_workflow.orchestrator.config import CollabSettings
from collab_workflow.orchestrator.logging import configure_logging
from collab_workflow.orchestrator.planning.task_diagram import generate_task_diagram
from collab_workflow.orchestrator.services import build_services
from collab_workflow.orchestrator.workflow.models import WorkItem, WorkItemType


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a session to implementation (example).")
    parser.add_argument("--session", required=True, help="Session name to create")
    parser.add_argument(
        "--max-steps",
        type=int,
        default=50,
        help="Give up after this many skill completions",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = CollabSettings()
    configure_logging(settings.log_level, fmt="text")
    services = build_services(settings)

    services.store.create(
        args.session,
        work_items=[
            WorkItem(number=1, title="Add login form", type=WorkItemType.CODE),
            WorkItem(number=2, title="Crash on empty password", type=WorkItemType.BUGFIX),
        ],
    )

    skill: str | None = "collab-start"
    for _ in range(args.max_steps):
        if skill is None or skill == "executing-plans":
            break
        result = services.driver.complete_skill(args.session, skill)
        print(f"{skill} -> {result.state} ({result.next_skill}) {result.params}")
        skill = result.next_skill

    record = services.store.load(args.session)
    print()
    print(generate_task_diagram(record.batches))
    print(f"Persisted to: {services.store.state_path(args.session)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
