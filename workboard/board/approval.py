"""Approval gate guarding the move of a work item into Done.

Entering Done needs a rating (and an optional comment) from the group
leader. The gate walks IDLE -> PENDING_REVIEW -> APPROVED | CANCELLED and
only ever holds one pending review. Failures of the approve request leave
the item where it was and bring the gate back to IDLE.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from typing import Callable

from workboard.board.model import LiveBoard
from workboard.notify import Notifier, Severity
from workboard.workflow.exceptions import (
    ApprovalPendingError,
    AuthorizationError,
    MutationFailedError,
    ValidationError,
)
from workboard.workflow.interface import WorkItemBackend
from workboard.workflow.models import Actor, WorkItem, WorkItemStatus
from workboard.workflow.permissions import can_approve

logger = logging.getLogger(__name__)

LEADER_ONLY_MESSAGE = "Only the group leader can approve work items"


class GateState(Enum):
    IDLE = "idle"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class ApprovalGate:
    def __init__(
        self,
        board: LiveBoard,
        backend: WorkItemBackend,
        notifier: Notifier,
        actor: Actor,
        max_rating: int = 5,
        on_confirmed: Callable[[WorkItem], None] | None = None,
    ) -> None:
        self._board = board
        self._backend = backend
        self._notifier = notifier
        self._actor = actor
        self.max_rating = max_rating
        self._on_confirmed = on_confirmed
        self.state = GateState.IDLE
        self.item: WorkItem | None = None
        self.rating: int | None = None
        self.comment: str | None = None
        self._submitting: int | None = None

    @property
    def is_open(self) -> bool:
        return self.state is GateState.PENDING_REVIEW

    @property
    def is_busy(self) -> bool:
        return self.is_open or self._submitting is not None

    def holds(self, item_id: int) -> bool:
        """True while the item is under review or its approve request is in flight."""
        if self._submitting == item_id:
            return True
        return self.is_open and self.item is not None and self.item.id == item_id

    def request(self, item: WorkItem) -> None:
        """Open the gate for an item dropped on Done."""
        if not can_approve(self._actor):
            raise AuthorizationError("approve", LEADER_ONLY_MESSAGE)
        if self.is_busy:
            pending = self.item.id if self.item is not None else self._submitting
            raise ApprovalPendingError(pending)
        self.state = GateState.PENDING_REVIEW
        self.item = item
        self.rating = None
        self.comment = None
        logger.debug("Approval opened for work item %s", item.id)

    def _validate_rating(self, rating) -> int:
        if rating is None:
            raise ValidationError("rating", "A rating is required")
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("rating", f"Rating must be a whole number, got {rating!r}")
        if not 1 <= rating <= self.max_rating:
            raise ValidationError(
                "rating", f"Rating must be between 1 and {self.max_rating}, got {rating}"
            )
        return rating

    async def resolve(self, rating: int | None, comment: str | None = None) -> WorkItem | None:
        """Confirm the pending review and send the approve request.

        Returns the approved item, or None when the backend rejected it.
        Raises ValidationError (gate stays open) for a missing or bad rating.
        """
        if not self.is_open or self.item is None:
            raise ValidationError("approval", "No work item is awaiting approval")
        rating = self._validate_rating(rating)
        comment = comment or ""

        item = self.item
        self.state = GateState.APPROVED
        self.rating = rating
        self.comment = comment
        self._submitting = item.id
        try:
            updated = await self._backend.approve_work_item(item.id, rating, comment)
        except MutationFailedError as exc:
            logger.warning("Approve request for work item %s failed: %s", item.id, exc)
            self.state = GateState.IDLE
            self.item = None
            self._notifier.notify(exc.message, Severity.ERROR)
            return None
        except BaseException:
            self.state = GateState.IDLE
            self.item = None
            raise
        finally:
            self._submitting = None

        if updated is None:
            updated = dataclasses.replace(item, status=WorkItemStatus.DONE, rating=rating)
        self._board.update(self._board.model.replaced(updated))
        logger.info("Work item %s approved with rating %s", item.id, rating)
        self._notifier.notify("Work item approved successfully", Severity.SUCCESS)
        if self._on_confirmed is not None:
            self._on_confirmed(updated)
        return updated

    def cancel(self) -> None:
        """Dismiss the dialog; nothing is sent and the item stays put."""
        if not self.is_open:
            return
        logger.debug("Approval cancelled for work item %s", self.item.id if self.item else None)
        self.state = GateState.CANCELLED
        self.item = None
