"""Board columns derived from work items, as pure immutable snapshots."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from workboard.workflow.models import WorkItem, WorkItemStatus
from workboard.workflow.transitions import COLUMN_ORDER


@dataclass(frozen=True)
class BoardSummary:
    counts: dict[WorkItemStatus, int]
    total: int
    lecturer_assigned: int

    @property
    def done_pct(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.counts[WorkItemStatus.DONE] / self.total * 100, 1)


@dataclass(frozen=True)
class BoardModel:
    """One ordered tuple of items per status.

    Every item sits in exactly one column and that column is its status;
    the transition helpers below keep both in step.
    """

    columns: Mapping[WorkItemStatus, tuple[WorkItem, ...]]

    def __post_init__(self) -> None:
        normalized = {status: tuple(self.columns.get(status, ())) for status in COLUMN_ORDER}
        object.__setattr__(self, "columns", normalized)

    @classmethod
    def empty(cls) -> BoardModel:
        return cls({})

    @classmethod
    def from_items(cls, items: Iterable[WorkItem]) -> BoardModel:
        grouped: dict[WorkItemStatus, list[WorkItem]] = {s: [] for s in COLUMN_ORDER}
        seen: set[int] = set()
        for item in items:
            if item.id in seen:
                continue
            seen.add(item.id)
            grouped[item.status].append(item)
        return cls({s: tuple(v) for s, v in grouped.items()})

    @classmethod
    def from_columns(cls, columns: Mapping[WorkItemStatus, Iterable[WorkItem]]) -> BoardModel:
        """Build from the server's column payload, trusting each item's own status."""
        ordered: list[WorkItem] = []
        for status in COLUMN_ORDER:
            ordered.extend(columns.get(status, ()))
        return cls.from_items(ordered)

    def column(self, status: WorkItemStatus) -> tuple[WorkItem, ...]:
        return self.columns[status]

    def items(self) -> list[WorkItem]:
        return [item for status in COLUMN_ORDER for item in self.columns[status]]

    def __len__(self) -> int:
        return sum(len(col) for col in self.columns.values())

    def find(self, item_id: int) -> tuple[WorkItemStatus, int] | None:
        for status in COLUMN_ORDER:
            for index, item in enumerate(self.columns[status]):
                if item.id == item_id:
                    return status, index
        return None

    def get(self, item_id: int) -> WorkItem | None:
        location = self.find(item_id)
        if location is None:
            return None
        status, index = location
        return self.columns[status][index]

    def status_of(self, item_id: int) -> WorkItemStatus | None:
        location = self.find(item_id)
        return None if location is None else location[0]

    def _with_columns(self, changes: dict[WorkItemStatus, tuple[WorkItem, ...]]) -> BoardModel:
        merged = dict(self.columns)
        merged.update(changes)
        return BoardModel(merged)

    def moved(
        self,
        item_id: int,
        to_status: WorkItemStatus,
        index: int | None = None,
        **changes,
    ) -> BoardModel:
        """Move an item to another column; appended unless an index is given.

        Extra keyword arguments are applied to the item copy (e.g. rating).
        """
        location = self.find(item_id)
        if location is None:
            return self
        from_status, from_index = location
        item = dataclasses.replace(self.columns[from_status][from_index], status=to_status, **changes)
        source = list(self.columns[from_status])
        del source[from_index]
        if from_status is to_status:
            target = source
        else:
            target = list(self.columns[to_status])
        position = len(target) if index is None else max(0, min(index, len(target)))
        target.insert(position, item)
        if from_status is to_status:
            return self._with_columns({to_status: tuple(target)})
        return self._with_columns({from_status: tuple(source), to_status: tuple(target)})

    def replaced(self, item: WorkItem) -> BoardModel:
        """Take the server's copy of an item; a changed status moves it to the end of its column."""
        location = self.find(item.id)
        if location is None:
            return self
        status, index = location
        if item.status is status:
            column = list(self.columns[status])
            column[index] = item
            return self._with_columns({status: tuple(column)})
        source = list(self.columns[status])
        del source[index]
        target = self.columns[item.status] + (item,)
        return self._with_columns({status: tuple(source), item.status: target})

    def without(self, item_id: int) -> BoardModel:
        location = self.find(item_id)
        if location is None:
            return self
        status, index = location
        column = list(self.columns[status])
        del column[index]
        return self._with_columns({status: tuple(column)})

    def summary(self) -> BoardSummary:
        counts = {status: len(self.columns[status]) for status in COLUMN_ORDER}
        lecturer = sum(1 for item in self.items() if item.is_lecturer_assigned)
        return BoardSummary(counts=counts, total=sum(counts.values()), lecturer_assigned=lecturer)


BoardListener = Callable[[BoardModel], None]


class LiveBoard:
    """Mutable holder for the current BoardModel snapshot.

    Reconciliation steps swap in new snapshots; listeners (views) are told
    after every swap.
    """

    def __init__(self, model: BoardModel | None = None) -> None:
        self._model = model or BoardModel.empty()
        self._listeners: list[BoardListener] = []

    @property
    def model(self) -> BoardModel:
        return self._model

    def update(self, model: BoardModel) -> None:
        if model is self._model:
            return
        self._model = model
        for listener in list(self._listeners):
            listener(model)

    def subscribe(self, listener: BoardListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
