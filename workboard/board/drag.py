"""Drag-and-drop controller with optimistic updates and rollback.

A drop onto another column moves the card locally right away, then sends
the status update. A failed update puts the card back where it was. Drops
onto Done go through the ApprovalGate instead and leave the card in place
until the review is confirmed.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Protocol

from workboard.board.approval import ApprovalGate
from workboard.board.model import BoardModel, LiveBoard
from workboard.notify import Notifier, Severity
from workboard.workflow.exceptions import (
    ApprovalPendingError,
    AuthorizationError,
    MutationFailedError,
    ValidationError,
)
from workboard.workflow.interface import WorkItemBackend
from workboard.workflow.models import WorkItem, WorkItemStatus
from workboard.workflow.transitions import coerce_status, requires_approval, validate_transition

logger = logging.getLogger(__name__)


class DragOutcome(Enum):
    NOOP = "noop"
    REJECTED = "rejected"
    AWAITING_APPROVAL = "awaiting_approval"
    MOVED = "moved"
    ROLLED_BACK = "rolled_back"


class DragSource(Protocol):
    """Anything that can report a finished drag: pointer, keyboard, script."""

    async def on_drag_end(
        self, item_id: int, target_column_id: WorkItemStatus | str | None
    ) -> DragOutcome: ...


@dataclass(frozen=True)
class DragStart:
    item_id: int
    status: WorkItemStatus


@dataclass(frozen=True)
class PendingMove:
    item_id: int
    from_status: WorkItemStatus
    from_index: int
    to_status: WorkItemStatus


class DragController:
    def __init__(
        self,
        board: LiveBoard,
        backend: WorkItemBackend,
        gate: ApprovalGate,
        notifier: Notifier,
        on_confirmed: Callable[[WorkItem], None] | None = None,
    ) -> None:
        self._board = board
        self._backend = backend
        self._gate = gate
        self._notifier = notifier
        self._on_confirmed = on_confirmed
        self._drags: dict[int, DragStart] = {}
        self._pending: dict[int, PendingMove] = {}
        self._held: set[int] = set()

    @property
    def pending(self) -> dict[int, PendingMove]:
        return dict(self._pending)

    def is_locked(self, item_id: int) -> bool:
        return item_id in self._pending or item_id in self._held or self._gate.holds(item_id)

    @contextmanager
    def hold(self, item_id: int) -> Iterator[None]:
        """Lock an item for a non-drag mutation (detail edit, delete).

        Drags of the item are rejected until the block exits.
        """
        if self.is_locked(item_id):
            raise ValidationError("item", f"Work item {item_id} has a pending change")
        self._held.add(item_id)
        try:
            yield
        finally:
            self._held.discard(item_id)

    def begin_drag(self, item_id: int) -> bool:
        """Record the start of a gesture. False when the item can't be dragged now."""
        status = self._board.model.status_of(item_id)
        if status is None:
            logger.debug("Drag started on unknown work item %s", item_id)
            return False
        if self.is_locked(item_id):
            logger.debug("Drag started on work item %s while a change is still pending", item_id)
            return False
        self._drags[item_id] = DragStart(item_id, status)
        return True

    async def end_drag(
        self, item_id: int, target: WorkItemStatus | str | None
    ) -> DragOutcome:
        start = self._drags.pop(item_id, None)
        if target is None:
            return DragOutcome.NOOP

        to_status = coerce_status(target)
        location = self._board.model.find(item_id)
        if location is None:
            logger.debug("Work item %s left the board during the drag", item_id)
            return DragOutcome.NOOP
        # The freshest known status wins over the one captured at drag start.
        from_status, from_index = location
        if start is not None and start.status is not from_status:
            logger.info(
                "Work item %s changed from %s to %s during the drag",
                item_id, start.status.value, from_status.value,
            )
        if from_status is to_status:
            return DragOutcome.NOOP
        if self.is_locked(item_id):
            logger.info("Ignoring drop of work item %s: a change is still pending", item_id)
            return DragOutcome.REJECTED

        if requires_approval(to_status):
            return self._open_approval(item_id)

        validate_transition(item_id, from_status, to_status)
        return await self._move(PendingMove(item_id, from_status, from_index, to_status))

    async def on_drag_end(
        self, item_id: int, target_column_id: WorkItemStatus | str | None
    ) -> DragOutcome:
        return await self.end_drag(item_id, target_column_id)

    async def move_to(self, item_id: int, target: WorkItemStatus | str) -> DragOutcome:
        """Keyboard form of a drag: begin and drop in one call."""
        if not self.begin_drag(item_id):
            return DragOutcome.REJECTED if self.is_locked(item_id) else DragOutcome.NOOP
        return await self.end_drag(item_id, target)

    def _open_approval(self, item_id: int) -> DragOutcome:
        item = self._board.model.get(item_id)
        try:
            self._gate.request(item)
        except AuthorizationError as exc:
            self._notifier.notify(exc.message, Severity.ERROR)
            return DragOutcome.REJECTED
        except ApprovalPendingError as exc:
            self._notifier.notify(str(exc), Severity.WARNING)
            return DragOutcome.REJECTED
        return DragOutcome.AWAITING_APPROVAL

    async def _move(self, move: PendingMove) -> DragOutcome:
        self._pending[move.item_id] = move
        self._board.update(self._board.model.moved(move.item_id, move.to_status))
        try:
            updated = await self._backend.update_work_item(
                move.item_id, status=move.to_status
            )
        except MutationFailedError as exc:
            logger.warning(
                "Status update for work item %s failed, rolling back: %s", move.item_id, exc
            )
            self._rollback(move)
            self._notifier.notify(exc.message, Severity.ERROR)
            return DragOutcome.ROLLED_BACK
        except BaseException:
            self._rollback(move)
            raise
        finally:
            self._pending.pop(move.item_id, None)

        if updated is not None:
            self._board.update(self._board.model.replaced(updated))
        confirmed = updated or self._board.model.get(move.item_id)
        logger.info(
            "Work item %s moved %s -> %s",
            move.item_id, move.from_status.value, move.to_status.value,
        )
        self._notifier.notify("Work item status updated successfully", Severity.SUCCESS)
        if self._on_confirmed is not None and confirmed is not None:
            self._on_confirmed(confirmed)
        return DragOutcome.MOVED

    def _rollback(self, move: PendingMove) -> None:
        board = self._board.model
        if board.status_of(move.item_id) is not move.to_status:
            # A reload already replaced the optimistic copy.
            return
        self._board.update(board.moved(move.item_id, move.from_status, index=move.from_index))

    def overlay(self, board: BoardModel) -> BoardModel:
        """Re-apply in-flight optimistic moves onto a freshly loaded board."""
        for move in self._pending.values():
            if board.status_of(move.item_id) is move.from_status:
                board = board.moved(move.item_id, move.to_status)
        return board
