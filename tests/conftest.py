"""Shared test configuration."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from workboard.adapters.memory import InMemoryBackend
from workboard.notify import RecordingNotifier
from workboard.workflow.models import Actor, WorkItem, WorkItemStatus, WorkItemType


def make_item(item_id: int, status: WorkItemStatus = WorkItemStatus.TODO, **fields) -> WorkItem:
    fields.setdefault("type", WorkItemType.TASK)
    fields.setdefault("summary", f"Item {item_id}")
    fields.setdefault("created_at", datetime(2026, 3, 1, tzinfo=timezone.utc))
    return WorkItem(id=item_id, status=status, **fields)


class ManualScheduler:
    """Timer scheduler driven by an explicit clock."""

    class Handle:
        def __init__(self, due: float, callback) -> None:
            self.due = due
            self.callback = callback
            self.cancelled = False

        def cancel(self) -> None:
            self.cancelled = True

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[ManualScheduler.Handle] = []

    def schedule(self, delay, callback):
        handle = ManualScheduler.Handle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for handle in list(self.handles):
            if not handle.cancelled and handle.due <= self.now:
                self.handles.remove(handle)
                handle.callback()

    @property
    def live(self) -> list[ManualScheduler.Handle]:
        return [h for h in self.handles if not h.cancelled]


class GatedBackend:
    """Wraps a backend so each call waits until the test releases it.

    Lets tests choose the order in which responses arrive.
    """

    def __init__(self, inner: InMemoryBackend) -> None:
        self.inner = inner
        self.waiting: list[tuple[str, asyncio.Event]] = []

    async def _gated(self, name: str, call):
        event = asyncio.Event()
        self.waiting.append((name, event))
        await event.wait()
        return await call()

    def release(self, index: int = 0) -> None:
        _, event = self.waiting.pop(index)
        event.set()

    def release_all(self) -> None:
        while self.waiting:
            self.release()

    async def get_board(self, filters):
        return await self._gated("board", lambda: self.inner.get_board(filters))

    async def list_work_items(self, filters, page, size):
        return await self._gated("list", lambda: self.inner.list_work_items(filters, page, size))

    async def get_work_item(self, item_id):
        return await self.inner.get_work_item(item_id)

    async def update_work_item(self, item_id, **fields):
        return await self._gated("update", lambda: self.inner.update_work_item(item_id, **fields))

    async def approve_work_item(self, item_id, rating, comment):
        return await self._gated(
            "approve", lambda: self.inner.approve_work_item(item_id, rating, comment)
        )

    async def delete_work_item(self, item_id):
        return await self.inner.delete_work_item(item_id)


async def settle() -> None:
    """Let every ready task run up to its next suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def items():
    return [
        make_item(1, WorkItemStatus.TODO, assignee_id=10, sprint_id=1),
        make_item(2, WorkItemStatus.TODO, sprint_id=1),
        make_item(3, WorkItemStatus.IN_PROGRESS, assignee_id=11),
        make_item(4, WorkItemStatus.WAIT_FOR_REVIEW, assignee_id=10, parent_lecturer_work_item_id=99),
        make_item(5, WorkItemStatus.DONE, assignee_id=11, rating=4),
    ]


@pytest.fixture
def backend(items):
    return InMemoryBackend(items)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def leader():
    return Actor(user_id=10, is_group_leader=True)


@pytest.fixture
def member():
    return Actor(user_id=11, is_group_leader=False)
