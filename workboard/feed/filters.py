"""Applied filter snapshots and their wire encoding.

A FilterState is a pure value. Checkbox edits happen on a FilterDraft and
reach the fetch layer only once the draft is built and applied. Empty facet
sets mean "no restriction" and are left out of the query entirely; the id 0
is a real value ("unassigned" / "no sprint") and is sent like any other.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable

from workboard.workflow.models import WorkItemStatus, WorkItemType
from workboard.workflow.transitions import COLUMN_ORDER, TYPE_ORDER, coerce_status

UNASSIGNED = 0
NO_SPRINT = 0

SET_FACETS = ("assignee_ids", "sprint_ids", "statuses", "types")


def _as_datetime(value: date | datetime | str | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time())


def _coerce_type(value: WorkItemType | str) -> WorkItemType:
    if isinstance(value, WorkItemType):
        return value
    for member in WorkItemType:
        if member.value.lower() == value.lower() or member.name == value.upper():
            return member
    raise ValueError(f"Unknown work item type: {value}")


def _join(values: Iterable) -> str:
    return ",".join(str(v) for v in values)


@dataclass(frozen=True)
class FilterState:
    assignee_ids: frozenset[int] = field(default_factory=frozenset)
    sprint_ids: frozenset[int] = field(default_factory=frozenset)
    statuses: frozenset[WorkItemStatus] = field(default_factory=frozenset)
    types: frozenset[WorkItemType] = field(default_factory=frozenset)
    from_date: datetime | None = None
    to_date: datetime | None = None
    keyword: str | None = None
    lecturer_only: bool | None = None

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "assignee_ids", frozenset(int(v) for v in self.assignee_ids))
        set_(self, "sprint_ids", frozenset(int(v) for v in self.sprint_ids))
        set_(self, "statuses", frozenset(coerce_status(v) for v in self.statuses))
        set_(self, "types", frozenset(_coerce_type(v) for v in self.types))
        set_(self, "from_date", _as_datetime(self.from_date))
        set_(self, "to_date", _as_datetime(self.to_date))
        if self.from_date and self.to_date and self.to_date < self.from_date:
            raise ValueError("to_date must not be earlier than from_date")
        set_(self, "keyword", (self.keyword or "").strip() or None)
        # Only "lecturer items only" or "no restriction" exist.
        set_(self, "lecturer_only", True if self.lecturer_only else None)

    def override(self, **changes) -> FilterState:
        """Return a new snapshot with some facets replaced (partial apply)."""
        return dataclasses.replace(self, **changes)

    @property
    def is_empty(self) -> bool:
        return self == FilterState()

    @property
    def active_facets(self) -> int:
        count = sum(1 for name in SET_FACETS if getattr(self, name))
        count += 1 if (self.from_date or self.to_date) else 0
        count += 1 if self.keyword else 0
        count += 1 if self.lecturer_only else 0
        return count

    def to_params(self) -> dict[str, str]:
        """Facet query parameters shared by the board and list endpoints."""
        params: dict[str, str] = {}
        if self.assignee_ids:
            params["assigneeIds"] = _join(sorted(self.assignee_ids))
        if self.sprint_ids:
            params["sprintIds"] = _join(sorted(self.sprint_ids))
        if self.statuses:
            params["statuses"] = _join(s.value for s in COLUMN_ORDER if s in self.statuses)
        if self.types:
            params["types"] = _join(t.value for t in TYPE_ORDER if t in self.types)
        if self.from_date:
            params["fromDate"] = self.from_date.isoformat()
        if self.to_date:
            params["toDate"] = self.to_date.isoformat()
        if self.keyword:
            params["keyword"] = self.keyword
        if self.lecturer_only:
            params["isLecturerTask"] = "true"
        return params

    def to_list_params(self, page: int, size: int) -> dict[str, str]:
        params = self.to_params()
        params["page"] = str(page)
        params["size"] = str(size)
        return params


class FilterDraft:
    """Editable copy of a FilterState behind the filter dropdowns."""

    def __init__(self, base: FilterState | None = None) -> None:
        base = base or FilterState()
        self._sets: dict[str, set] = {name: set(getattr(base, name)) for name in SET_FACETS}
        self.from_date = base.from_date
        self.to_date = base.to_date
        self.keyword = base.keyword
        self.lecturer_only = base.lecturer_only

    def toggle(self, facet: str, value) -> bool:
        """Flip one checkbox. Returns True when the value is now selected."""
        if facet not in self._sets:
            raise KeyError(f"Unknown facet: {facet}")
        if facet == "statuses":
            value = coerce_status(value)
        elif facet == "types":
            value = _coerce_type(value)
        selected = self._sets[facet]
        if value in selected:
            selected.remove(value)
            return False
        selected.add(value)
        return True

    def selected(self, facet: str) -> frozenset:
        return frozenset(self._sets[facet])

    def clear(self, facet: str | None = None) -> None:
        names = SET_FACETS if facet is None else (facet,)
        for name in names:
            self._sets[name].clear()
        if facet is None:
            self.from_date = self.to_date = None
            self.keyword = None
            self.lecturer_only = None

    def set_date_range(self, from_date=None, to_date=None) -> None:
        self.from_date = from_date
        self.to_date = to_date

    def build(self) -> FilterState:
        return FilterState(
            assignee_ids=frozenset(self._sets["assignee_ids"]),
            sprint_ids=frozenset(self._sets["sprint_ids"]),
            statuses=frozenset(self._sets["statuses"]),
            types=frozenset(self._sets["types"]),
            from_date=self.from_date,
            to_date=self.to_date,
            keyword=self.keyword,
            lecturer_only=self.lecturer_only,
        )
