"""Work-item status lifecycle.

Items only ever move forward: ``pending -> brainstormed -> complete``.
Sessions written under the older per-stage schema are collapsed onto the
three-value status via :func:`migrate_work_items` when they are loaded.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import ItemStatus, WorkItem

ALLOWED_STATUS_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.BRAINSTORMED}),
    ItemStatus.BRAINSTORMED: frozenset({ItemStatus.COMPLETE}),
    ItemStatus.COMPLETE: frozenset(),
}

LEGACY_STATUS_MAP: dict[str, ItemStatus] = {
    "documented": ItemStatus.BRAINSTORMED,
    "interface": ItemStatus.COMPLETE,
    "pseudocode": ItemStatus.COMPLETE,
    "skeleton": ItemStatus.COMPLETE,
}


class InvalidTransition(ValueError):
    """An out-of-order work-item status change."""

    def __init__(self, *, item_number: int, from_status: ItemStatus, to_status: ItemStatus):
        self.item_number = item_number
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from '{from_status.value}' to "
            f"'{to_status.value}' for item {item_number}"
        )


def update_item_status(item: WorkItem, new_status: ItemStatus | str) -> WorkItem:
    """Return a copy of ``item`` with ``new_status``; the input is left untouched."""

    target = ItemStatus(new_status)
    if target not in ALLOWED_STATUS_TRANSITIONS[item.status]:
        raise InvalidTransition(item_number=item.number, from_status=item.status, to_status=target)
    return item.model_copy(update={"status": target})


def replace_item(items: Iterable[WorkItem], updated: WorkItem) -> tuple[WorkItem, ...]:
    """Swap the item with ``updated.number`` for ``updated``, keeping order."""

    return tuple(updated if item.number == updated.number else item for item in items)


def migrate_status(raw: str | ItemStatus) -> ItemStatus:
    if isinstance(raw, ItemStatus):
        return raw
    if raw in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[raw]
    try:
        return ItemStatus(raw)
    except ValueError:
        raise ValueError(f"Unknown work item status: {raw!r}") from None


def migrate_work_items(items: Iterable[WorkItem | Mapping[str, object]]) -> list[WorkItem]:
    """Normalise work items (raw session JSON or models) onto the current statuses.

    Running this on already-migrated items is a no-op.
    """

    migrated: list[WorkItem] = []
    for item in items:
        if isinstance(item, WorkItem):
            migrated.append(item)
            continue
        data = dict(item)
        status = data.get("status", ItemStatus.PENDING.value)
        if not isinstance(status, str):
            raise ValueError(f"Work item status must be a string, got {type(status).__name__}")
        data["status"] = migrate_status(status)
        migrated.append(WorkItem.model_validate(data))
    return migrated
