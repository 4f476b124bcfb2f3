"""CLI entrypoint for the collab workflow engine.

Every command prints JSON (or Mermaid for ``task-graph --diagram``) on stdout;
logs go to stderr.

Exit codes:
    0  success
    1  unexpected failure
    2  configuration or usage error
    3  workflow rule violation (illegal status change, dependency cycle, bad task document)
    4  unknown session, state, skill or task
    5  no tasks to plan
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from collab_workflow import __version__
from collab_workflow.orchestrator.config import CollabSettings
from collab_workflow.orchestrator.logging import configure_logging
from collab_workflow.orchestrator.planning.task_diagram import generate_task_diagram
from collab_workflow.orchestrator.planning.task_graph import (
    CyclicDependency,
    TaskGraphParseError,
    build_batches,
    parse_task_graph,
)
from collab_workflow.orchestrator.planning.task_sync import NoTasksFound
from collab_workflow.orchestrator.services import build_services
from collab_workflow.orchestrator.workflow.lifecycle import InvalidTransition
from collab_workflow.orchestrator.workflow.models import (
    BatchTaskStatus,
    SessionType,
    WorkItem,
    WorkItemType,
)
from collab_workflow.orchestrator.workflow.registry import (
    REGISTRIES,
    display_name,
    get_registry,
    phase_for_state,
)
from collab_workflow.orchestrator.workflow.transitions import RoutingLoopError

logger = logging.getLogger(__name__)

EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_RULE_VIOLATION = 3
EXIT_NOT_FOUND = 4
EXIT_NO_TASKS = 5


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def parse_work_item(value: str, number: int) -> WorkItem:
    """Parse ``TYPE:TITLE`` (e.g. ``code:Add login form``)."""

    kind, sep, title = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"Work item must look like TYPE:TITLE, got {value!r}")
    try:
        item_type = WorkItemType(kind.strip().lower())
    except ValueError:
        choices = ", ".join(t.value for t in WorkItemType)
        raise argparse.ArgumentTypeError(
            f"Unknown work item type {kind!r}; expected one of: {choices}"
        ) from None
    return WorkItem(number=number, title=title.strip(), type=item_type)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collab-workflow",
        description="Drive a collab development session through its workflow states",
    )
    parser.add_argument("--version", action="version", version=f"collab-workflow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-session", help="Create a new session state file")
    create.add_argument("session", help="Session name")
    create.add_argument(
        "--type",
        dest="session_type",
        choices=[t.value for t in SessionType],
        default=SessionType.STRUCTURED.value,
        help="Session type",
    )
    create.add_argument(
        "--item",
        dest="items",
        action="append",
        default=[],
        metavar="TYPE:TITLE",
        help="Work item, repeatable; numbered in the order given (e.g. 'code:Add login')",
    )

    show = subparsers.add_parser("show-session", help="Print the stored session state")
    show.add_argument("session", help="Session name")

    complete = subparsers.add_parser(
        "complete-skill",
        help="Report a finished skill and print the next skill to run",
    )
    complete.add_argument("session", help="Session name")
    complete.add_argument("skill", help="Name of the skill that just completed")

    preview = subparsers.add_parser(
        "next-state",
        help="Preview where completing the current state's skill would lead (no changes saved)",
    )
    preview.add_argument("session", help="Session name")

    sync = subparsers.add_parser(
        "sync-tasks",
        help="Rebuild execution batches from the session's task documents",
    )
    sync.add_argument("session", help="Session name")

    graph = subparsers.add_parser(
        "task-graph",
        help="Print execution batches for a session or a task document",
    )
    source = graph.add_mutually_exclusive_group(required=True)
    source.add_argument("--session", default=None, help="Session whose stored batches to print")
    source.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Markdown task document to plan without touching any session",
    )
    graph.add_argument("--diagram", action="store_true", help="Print a Mermaid diagram instead")

    update = subparsers.add_parser("update-task", help="Set the status of one batch task")
    update.add_argument("session", help="Session name")
    update.add_argument("task_id", help="Task id")
    update.add_argument("status", choices=[s.value for s in BatchTaskStatus], help="New status")

    states = subparsers.add_parser("states", help="List workflow states for a topology")
    states.add_argument(
        "--topology",
        choices=sorted(REGISTRIES),
        default=None,
        help="Topology to list (defaults to COLLAB_WORKFLOW_TOPOLOGY)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = CollabSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings.log_level, fmt=settings.log_format)
    services = build_services(settings)

    try:
        if args.command == "create-session":
            items = [parse_work_item(raw, n) for n, raw in enumerate(args.items, start=1)]
            record = services.store.create(
                args.session,
                session_type=SessionType(args.session_type),
                work_items=items,
            )
            _print_json(record.to_json())
            return 0

        if args.command == "show-session":
            _print_json(services.store.load(args.session).to_json())
            return 0

        if args.command == "complete-skill":
            result = services.driver.complete_skill(args.session, args.skill)
            _print_json(result.to_json())
            return 0

        if args.command == "next-state":
            _print_json(services.driver.preview_next_state(args.session).to_json())
            return 0

        if args.command == "sync-tasks":
            record = services.synchronizer.sync(args.session)
            _print_json(
                {
                    "batches": [b.model_dump(mode="json", by_alias=True) for b in record.batches],
                    "completedTasks": record.completed_tasks,
                    "pendingTasks": record.pending_tasks,
                }
            )
            return 0

        if args.command == "task-graph":
            if args.file is not None:
                batches = build_batches(parse_task_graph(args.file.read_text(encoding="utf-8")))
            else:
                batches = services.store.load(args.session).batches
            if args.diagram:
                print(generate_task_diagram(batches))
            else:
                _print_json([b.model_dump(mode="json", by_alias=True) for b in batches])
            return 0

        if args.command == "update-task":
            record = services.driver.update_task(args.session, args.task_id, args.status)
            _print_json(
                {
                    "completedTasks": record.completed_tasks,
                    "pendingTasks": record.pending_tasks,
                }
            )
            return 0

        if args.command == "states":
            registry = get_registry(args.topology or settings.workflow_topology)
            _print_json(
                [
                    {
                        "id": state.id,
                        "skill": state.skill,
                        "displayName": display_name(state.id),
                        "phase": phase_for_state(state.id),
                        "transitions": [
                            {
                                "to": t.to,
                                "condition": t.condition.to_json() if t.condition else None,
                            }
                            for t in state.transitions
                        ],
                    }
                    for state in registry.states()
                ]
            )
            return 0

        parser.error(f"Unknown command: {args.command}")
        return EXIT_USAGE

    except NoTasksFound as e:
        logger.warning(str(e), extra={"session": e.session})
        print(str(e), file=sys.stderr)
        return EXIT_NO_TASKS

    except (InvalidTransition, CyclicDependency, TaskGraphParseError, RoutingLoopError) as e:
        logger.warning(str(e))
        print(str(e), file=sys.stderr)
        return EXIT_RULE_VIOLATION

    except LookupError as e:
        # Session, task, state and skill lookups.
        print(str(e), file=sys.stderr)
        return EXIT_NOT_FOUND

    except (argparse.ArgumentTypeError, FileExistsError, FileNotFoundError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE

    except Exception:
        logger.exception("Command failed")
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    raise SystemExit(main())
