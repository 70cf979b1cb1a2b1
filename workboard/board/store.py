"""Ordered, identity-keyed collection of retrieved work items."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from workboard.workflow.models import WorkItem


@dataclass(frozen=True)
class WorkItemStore:
    """Immutable store; every operation returns a new store.

    Items keep the order the server delivered them in. Ids are unique:
    appending an id that is already present keeps the first copy.
    """

    items: tuple[WorkItem, ...] = ()
    _index: dict[int, int] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: dict[int, int] = {}
        unique: list[WorkItem] = []
        for item in self.items:
            if item.id in index:
                continue
            index[item.id] = len(unique)
            unique.append(item)
        object.__setattr__(self, "items", tuple(unique))
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[WorkItem]:
        return iter(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._index

    @property
    def ids(self) -> list[int]:
        return [item.id for item in self.items]

    def get(self, item_id: int) -> WorkItem | None:
        position = self._index.get(item_id)
        return None if position is None else self.items[position]

    def replaced(self, items: Iterable[WorkItem]) -> WorkItemStore:
        return WorkItemStore(tuple(items))

    def appended(self, items: Iterable[WorkItem]) -> WorkItemStore:
        fresh = tuple(item for item in items if item.id not in self._index)
        if not fresh:
            return self
        return WorkItemStore(self.items + fresh)

    def upserted(self, item: WorkItem, append_missing: bool = False) -> WorkItemStore:
        """Swap in the server's copy of an item, keeping its position."""
        position = self._index.get(item.id)
        if position is None:
            return self.appended([item]) if append_missing else self
        updated = list(self.items)
        updated[position] = item
        return WorkItemStore(tuple(updated))

    def without(self, item_id: int) -> WorkItemStore:
        if item_id not in self._index:
            return self
        return WorkItemStore(tuple(i for i in self.items if i.id != item_id))
