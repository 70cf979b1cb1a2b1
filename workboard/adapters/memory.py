"""In-memory work item backend for tests and demos."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

from ..feed.filters import NO_SPRINT, UNASSIGNED, FilterState
from ..workflow.exceptions import ConflictOrServerError, MutationFailedError
from ..workflow.models import WorkItem, WorkItemPage, WorkItemStatus, WorkItemType
from ..workflow.permissions import LECTURER_ITEM_EDITABLE_FIELDS
from ..workflow.transitions import COLUMN_ORDER, coerce_status

UPDATABLE_FIELDS = frozenset(
    {
        "summary",
        "description",
        "status",
        "assignee_id",
        "sprint_id",
        "story_points",
        "start_date",
        "end_date",
        "parent_item_id",
    }
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def matches(item: WorkItem, filters: FilterState) -> bool:
    """Server-side facet semantics: sets are ORed inside a facet, ANDed across."""
    if filters.assignee_ids:
        assignee = UNASSIGNED if item.assignee_id is None else item.assignee_id
        if assignee not in filters.assignee_ids:
            return False
    if filters.sprint_ids:
        sprint = NO_SPRINT if item.sprint_id is None else item.sprint_id
        if sprint not in filters.sprint_ids:
            return False
    if filters.statuses and item.status not in filters.statuses:
        return False
    if filters.types and item.type not in filters.types:
        return False
    if filters.from_date or filters.to_date:
        if item.created_at is None:
            return False
        created = _as_utc(item.created_at)
        if filters.from_date and created < _as_utc(filters.from_date):
            return False
        if filters.to_date and created >= _as_utc(filters.to_date):
            return False
    if filters.keyword:
        needle = filters.keyword.lower()
        haystack = f"{item.key or ''} {item.summary}".lower()
        if needle not in haystack:
            return False
    if filters.lecturer_only and not item.is_lecturer_assigned:
        return False
    return True


class InMemoryBackend:
    """WorkItemBackend backed by a dict. For tests and demos.

    Every call is recorded in ``calls`` as ``(operation, item_id_or_page)``.
    ``fail_next`` queues an error for the next mutation, standing in for a
    server-side rejection or a dropped connection.
    """

    def __init__(self, items: list[WorkItem] | None = None) -> None:
        self._items: dict[int, WorkItem] = {}
        self._next_id = 1
        self.calls: list[tuple[str, object]] = []
        self._failures: list[MutationFailedError] = []
        for item in items or []:
            self.add(item)

    def add(self, item: WorkItem) -> WorkItem:
        if item.created_at is None:
            item = dataclasses.replace(item, created_at=_now(), updated_at=_now())
        self._items[item.id] = item
        self._next_id = max(self._next_id, item.id + 1)
        return item

    def create(
        self,
        summary: str,
        type: WorkItemType = WorkItemType.TASK,
        status: WorkItemStatus = WorkItemStatus.TODO,
        **fields,
    ) -> WorkItem:
        item = WorkItem(id=self._next_id, type=type, status=status, summary=summary, **fields)
        return self.add(item)

    def fail_next(self, error: MutationFailedError) -> None:
        self._failures.append(error)

    def mutation_calls(self) -> list[tuple[str, object]]:
        return [c for c in self.calls if c[0] in ("update", "approve", "delete")]

    def _raise_queued(self) -> None:
        if self._failures:
            raise self._failures.pop(0)

    def _require(self, item_id: int) -> WorkItem:
        if item_id not in self._items:
            raise ConflictOrServerError(404, f"Work item not found: {item_id}")
        return self._items[item_id]

    async def get_board(self, filters: FilterState) -> dict[WorkItemStatus, list[WorkItem]]:
        self.calls.append(("board", None))
        columns: dict[WorkItemStatus, list[WorkItem]] = {s: [] for s in COLUMN_ORDER}
        for item in self._items.values():
            if matches(item, filters):
                columns[item.status].append(item)
        return columns

    async def list_work_items(self, filters: FilterState, page: int, size: int) -> WorkItemPage:
        self.calls.append(("list", page))
        matched = [item for item in self._items.values() if matches(item, filters)]
        start = (page - 1) * size
        return WorkItemPage(total=len(matched), items=tuple(matched[start:start + size]))

    async def get_work_item(self, item_id: int) -> WorkItem:
        self.calls.append(("get", item_id))
        return self._require(item_id)

    async def update_work_item(self, item_id: int, **fields) -> WorkItem:
        self.calls.append(("update", item_id))
        self._raise_queued()
        item = self._require(item_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ConflictOrServerError(400, f"Unknown work item fields: {', '.join(sorted(unknown))}")
        if item.is_lecturer_assigned and not set(fields) <= LECTURER_ITEM_EDITABLE_FIELDS:
            raise ConflictOrServerError(403, "Lecturer assigned work items cannot be edited")
        if item.status is WorkItemStatus.DONE:
            raise ConflictOrServerError(409, "Completed work items can no longer be updated")
        if "status" in fields:
            fields["status"] = coerce_status(fields["status"])
            if fields["status"] is WorkItemStatus.DONE:
                raise ConflictOrServerError(400, "Work items must be approved to be marked done")
        updated = dataclasses.replace(item, updated_at=_now(), **fields)
        self._items[item_id] = updated
        return updated

    async def approve_work_item(self, item_id: int, rating: int, comment: str) -> WorkItem:
        self.calls.append(("approve", item_id))
        self._raise_queued()
        item = self._require(item_id)
        if item.status is WorkItemStatus.DONE:
            raise ConflictOrServerError(409, "Work item is already done")
        updated = dataclasses.replace(
            item, status=WorkItemStatus.DONE, rating=rating, updated_at=_now()
        )
        self._items[item_id] = updated
        return updated

    async def delete_work_item(self, item_id: int) -> None:
        self.calls.append(("delete", item_id))
        self._raise_queued()
        self._require(item_id)
        del self._items[item_id]


def demo_backend() -> InMemoryBackend:
    """A small seeded board for ``--mock`` runs."""
    backend = InMemoryBackend()
    epic = backend.create("Course project", type=WorkItemType.EPIC, status=WorkItemStatus.IN_PROGRESS, key="GRP-1")
    story = backend.create(
        "Student can log in", type=WorkItemType.STORY, key="GRP-2",
        parent_item_id=epic.id, assignee_id=1, sprint_id=1, story_points=5,
    )
    backend.create(
        "Login form", key="GRP-3", parent_item_id=story.id, assignee_id=1, sprint_id=1,
        status=WorkItemStatus.IN_PROGRESS, story_points=3,
    )
    backend.create(
        "Session refresh", key="GRP-4", parent_item_id=story.id, assignee_id=2, sprint_id=1,
        status=WorkItemStatus.WAIT_FOR_REVIEW, story_points=2,
    )
    backend.create("Write project report", key="GRP-5", parent_lecturer_work_item_id=100)
    backend.create("Set up repository", key="GRP-6", assignee_id=2, status=WorkItemStatus.DONE, rating=4)
    backend.create("Unplanned spike", type=WorkItemType.SUBTASK, key="GRP-7")
    return backend
