"""Infinite-scroll accumulator over the paginated list endpoint.

The state transitions are pure functions over FeedState; PaginatedFeed
holds the current snapshot and performs the fetches. Each reset bumps a
generation token, and a response is only accepted when it carries the
generation (and page) the state still expects, so a slow page from an
older filter can never leak into a newer accumulation.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable

from workboard.board.store import WorkItemStore
from workboard.feed.filters import FilterState
from workboard.notify import Notifier, Severity
from workboard.workflow.exceptions import WorkboardError
from workboard.workflow.interface import WorkItemBackend
from workboard.workflow.models import WorkItem

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class FeedState:
    filters: FilterState = field(default_factory=FilterState)
    store: WorkItemStore = field(default_factory=WorkItemStore)
    total: int = 0
    next_page: int = 1
    generation: int = 0
    in_flight: int | None = None  # page being fetched
    loaded: bool = False
    exhausted: bool = False
    error: str | None = None

    @property
    def items(self) -> tuple[WorkItem, ...]:
        return self.store.items

    @property
    def loading(self) -> bool:
        return self.in_flight is not None

    @property
    def has_more(self) -> bool:
        if not self.loaded:
            return True
        return not self.exhausted and len(self.store) < self.total


def begin_reset(state: FeedState, filters: FilterState) -> FeedState:
    return FeedState(
        filters=filters,
        generation=state.generation + 1,
        in_flight=1,
    )


def begin_load_more(state: FeedState) -> FeedState | None:
    """Next state for a load-more, or None when it must not fetch."""
    if state.loading or not state.loaded or not state.has_more:
        return None
    return dataclasses.replace(state, in_flight=state.next_page, error=None)


def is_current(state: FeedState, generation: int, page: int) -> bool:
    return state.generation == generation and state.in_flight == page


def receive_page(
    state: FeedState,
    generation: int,
    page: int,
    total: int,
    items: tuple[WorkItem, ...] | list[WorkItem],
) -> FeedState:
    if not is_current(state, generation, page):
        return state
    store = state.store.appended(items)
    added = len(store) - len(state.store)
    return dataclasses.replace(
        state,
        store=store,
        total=max(total, len(store)),
        next_page=page + 1,
        in_flight=None,
        loaded=True,
        exhausted=added == 0 and len(store) < total,
        error=None,
    )


def fail_page(state: FeedState, generation: int, page: int, message: str) -> FeedState:
    if not is_current(state, generation, page):
        return state
    return dataclasses.replace(state, in_flight=None, error=message)


def upsert_item(state: FeedState, item: WorkItem) -> FeedState:
    store = state.store.upserted(item)
    if store is state.store:
        return state
    return dataclasses.replace(state, store=store)


def remove_item(state: FeedState, item_id: int) -> FeedState:
    store = state.store.without(item_id)
    if store is state.store:
        return state
    return dataclasses.replace(state, store=store, total=max(state.total - 1, len(store)))


FeedListener = Callable[[FeedState], None]


class PaginatedFeed:
    def __init__(
        self,
        backend: WorkItemBackend,
        notifier: Notifier,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._backend = backend
        self._notifier = notifier
        self.page_size = page_size
        self._state = FeedState()
        self._listeners: list[FeedListener] = []

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def items(self) -> tuple[WorkItem, ...]:
        return self._state.items

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    def subscribe(self, listener: FeedListener) -> None:
        self._listeners.append(listener)

    def _set(self, state: FeedState) -> None:
        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    async def reset(self, filters: FilterState) -> FeedState:
        """Drop the accumulation and fetch page 1 under ``filters``."""
        self._set(begin_reset(self._state, filters))
        await self._fetch(self._state)
        return self._state

    async def load_more(self) -> bool:
        """Fetch the next page. False when nothing was requested."""
        state = begin_load_more(self._state)
        if state is None:
            return False
        self._set(state)
        await self._fetch(state)
        return True

    async def _fetch(self, state: FeedState) -> None:
        generation, page = state.generation, state.in_flight
        try:
            result = await self._backend.list_work_items(state.filters, page, self.page_size)
        except WorkboardError as exc:
            if not is_current(self._state, generation, page):
                logger.debug("Dropping failure of superseded page %s (gen %s)", page, generation)
                return
            logger.warning("Loading page %s failed: %s", page, exc)
            self._set(fail_page(self._state, generation, page, str(exc)))
            self._notifier.notify("Failed to load work items", Severity.ERROR)
            return
        except BaseException:
            # Release the in-flight page before propagating.
            self._set(fail_page(self._state, generation, page, "Loading work items failed"))
            raise

        if not is_current(self._state, generation, page):
            logger.debug("Dropping stale page %s (gen %s)", page, generation)
            return
        self._set(receive_page(self._state, generation, page, result.total, result.items))

    def apply_item(self, item: WorkItem) -> None:
        """Swap in a confirmed server copy of an item already in the list."""
        self._set(upsert_item(self._state, item))

    def drop_item(self, item_id: int) -> None:
        self._set(remove_item(self._state, item_id))
