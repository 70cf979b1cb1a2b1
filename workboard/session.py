"""Session facade wiring the board and list engines for a UI.

A BoardSession owns one applied FilterState and keeps the board and the
paginated list in step with it. Views call the operations here and read
``board``/``feed``/``gate`` for state.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from workboard.board.approval import ApprovalGate
from workboard.board.drag import DragController, DragOutcome
from workboard.board.model import BoardSummary, LiveBoard
from workboard.config import BoardConfig
from workboard.feed.board import BoardFeed
from workboard.feed.debounce import AsyncioTimerScheduler, SearchDebouncer, TimerScheduler
from workboard.feed.filters import FilterState
from workboard.feed.paginated import PaginatedFeed
from workboard.notify import LogNotifier, Notifier, Severity
from workboard.workflow.exceptions import AuthorizationError, MutationFailedError, ValidationError
from workboard.workflow.interface import WorkItemBackend
from workboard.workflow.models import Actor, WorkItem, WorkItemStatus
from workboard.workflow.permissions import can_delete, can_edit_details

logger = logging.getLogger(__name__)


class BoardSession:
    def __init__(
        self,
        backend: WorkItemBackend,
        actor: Actor,
        config: BoardConfig | None = None,
        notifier: Notifier | None = None,
        scheduler: TimerScheduler | None = None,
    ) -> None:
        self.config = config or BoardConfig()
        self.backend = backend
        self.actor = actor
        self.notifier = notifier or LogNotifier()
        self.filters = FilterState()

        self.board = LiveBoard()
        self.feed = PaginatedFeed(backend, self.notifier, page_size=self.config.page_size)
        self.gate = ApprovalGate(
            self.board,
            backend,
            self.notifier,
            actor,
            max_rating=self.config.max_rating,
            on_confirmed=self.feed.apply_item,
        )
        self.drag = DragController(
            self.board, backend, self.gate, self.notifier, on_confirmed=self.feed.apply_item
        )
        self.board_feed = BoardFeed(backend, self.board, self.notifier, overlay=self.drag.overlay)
        self.debouncer = SearchDebouncer(
            scheduler or AsyncioTimerScheduler(),
            self._on_keyword_settled,
            delay=self.config.debounce_seconds,
        )
        self._tasks: set[asyncio.Task] = set()

    # -- Loading / filters --

    async def start(self) -> None:
        await self.refresh()

    async def refresh(self) -> None:
        """Reload board and list under the applied filters."""
        await asyncio.gather(
            self.board_feed.reload(self.filters),
            self.feed.reset(self.filters),
        )

    async def apply_filters(self, **override) -> FilterState:
        """Apply a partial filter override; always restarts the list at page 1."""
        self.filters = self.filters.override(**override)
        if "keyword" in override:
            self.debouncer.reset(self.filters.keyword or "")
        logger.debug("Applying filters: %s", self.filters.to_params())
        await self.refresh()
        return self.filters

    async def clear_all_filters(self) -> FilterState:
        self.debouncer.reset("")
        self.filters = FilterState()
        await self.refresh()
        return self.filters

    def search(self, text: str) -> None:
        """Raw keyword input; applied once typing pauses."""
        self.debouncer.feed(text)

    @property
    def is_searching(self) -> bool:
        return self.debouncer.is_searching

    def _on_keyword_settled(self, keyword: str) -> None:
        self.filters = self.filters.override(keyword=keyword)
        task = asyncio.ensure_future(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait for refreshes started by settled searches."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def load_more(self) -> bool:
        return await self.feed.load_more()

    # -- Drag / approval --

    def begin_drag(self, item_id: int) -> bool:
        return self.drag.begin_drag(item_id)

    async def end_drag(self, item_id: int, target: WorkItemStatus | str | None) -> DragOutcome:
        return await self.drag.end_drag(item_id, target)

    async def move_item(self, item_id: int, target: WorkItemStatus | str) -> DragOutcome:
        return await self.drag.move_to(item_id, target)

    async def resolve_approval(self, rating: int | None, comment: str | None = None) -> WorkItem | None:
        return await self.gate.resolve(rating, comment)

    def cancel_approval(self) -> None:
        self.gate.cancel()

    # -- Item edits --

    def _find(self, item_id: int) -> WorkItem:
        item = self.board.model.get(item_id) or self.feed.state.store.get(item_id)
        if item is None:
            raise KeyError(f"Work item not found: {item_id}")
        return item

    async def update_details(self, item_id: int, **fields) -> WorkItem | None:
        """Edit fields other than status. Returns None when the backend refused."""
        if not fields:
            raise ValidationError("fields", "Nothing to update")
        if "status" in fields:
            raise ValidationError("status", "Change the status by moving the card")
        points = fields.get("story_points")
        if points is not None and points < 0:
            raise ValidationError("story_points", "Story points must be non-negative")
        item = self._find(item_id)
        if not can_edit_details(item, set(fields)):
            raise AuthorizationError("edit", "Lecturer assigned work items cannot be edited")

        with self.drag.hold(item_id):
            try:
                updated = await self.backend.update_work_item(item_id, **fields)
            except MutationFailedError as exc:
                logger.warning("Updating work item %s failed: %s", item_id, exc)
                self.notifier.notify(exc.message, Severity.ERROR)
                return None
            if updated is None:
                updated = await self._refetch(item, fields)
        self.board.update(self.board.model.replaced(updated))
        self.feed.apply_item(updated)
        self.notifier.notify("Work item updated successfully", Severity.SUCCESS)
        return updated

    async def _refetch(self, item: WorkItem, fields: dict) -> WorkItem:
        try:
            return await self.backend.get_work_item(item.id)
        except MutationFailedError as exc:
            logger.warning("Re-reading work item %s after update failed: %s", item.id, exc)
            return dataclasses.replace(item, **fields)

    async def delete_item(self, item_id: int) -> bool:
        item = self._find(item_id)
        if not can_delete(self.actor, item):
            raise AuthorizationError(
                "delete", "Only the group leader or the reporter can delete this work item"
            )
        with self.drag.hold(item_id):
            try:
                await self.backend.delete_work_item(item_id)
            except MutationFailedError as exc:
                logger.warning("Deleting work item %s failed: %s", item_id, exc)
                self.notifier.notify(exc.message, Severity.ERROR)
                return False
        self.board.update(self.board.model.without(item_id))
        self.feed.drop_item(item_id)
        self.notifier.notify("Work item deleted", Severity.SUCCESS)
        return True

    def summary(self) -> BoardSummary:
        return self.board.model.summary()
