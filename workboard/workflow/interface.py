"""Abstract work item backend protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from .models import WorkItem, WorkItemPage, WorkItemStatus

if TYPE_CHECKING:
    from workboard.feed.filters import FilterState


class WorkItemBackend(Protocol):
    """Interface that any work item service must implement.

    Read operations take an applied FilterState; mutations return the
    server's copy of the item, or None when the service echoes nothing.
    """

    async def get_board(
        self, filters: FilterState
    ) -> dict[WorkItemStatus, list[WorkItem]]: ...

    async def list_work_items(
        self, filters: FilterState, page: int, size: int
    ) -> WorkItemPage: ...

    async def get_work_item(self, item_id: int) -> WorkItem: ...

    async def update_work_item(self, item_id: int, **fields) -> WorkItem | None: ...

    async def approve_work_item(
        self, item_id: int, rating: int, comment: str
    ) -> WorkItem | None: ...

    async def delete_work_item(self, item_id: int) -> None: ...
