"""Generation-guarded reloads of the board endpoint."""

from __future__ import annotations

import logging
from typing import Callable

from workboard.board.model import BoardModel, LiveBoard
from workboard.feed.filters import FilterState
from workboard.notify import Notifier, Severity
from workboard.workflow.exceptions import WorkboardError
from workboard.workflow.interface import WorkItemBackend

logger = logging.getLogger(__name__)


class BoardFeed:
    def __init__(
        self,
        backend: WorkItemBackend,
        board: LiveBoard,
        notifier: Notifier,
        overlay: Callable[[BoardModel], BoardModel] | None = None,
    ) -> None:
        self._backend = backend
        self._board = board
        self._notifier = notifier
        self._overlay = overlay
        self.generation = 0
        self.loading = False

    async def reload(self, filters: FilterState) -> bool:
        """Fetch all four columns; False when the result was stale or failed."""
        self.generation += 1
        generation = self.generation
        self.loading = True
        try:
            columns = await self._backend.get_board(filters)
        except WorkboardError as exc:
            if generation != self.generation:
                return False
            self.loading = False
            logger.warning("Loading the board failed: %s", exc)
            self._notifier.notify("Failed to load board data", Severity.ERROR)
            return False

        if generation != self.generation:
            logger.debug("Dropping stale board response (gen %s)", generation)
            return False
        self.loading = False
        model = BoardModel.from_columns(columns)
        if self._overlay is not None:
            model = self._overlay(model)
        self._board.update(model)
        return True
