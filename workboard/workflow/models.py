"""Domain models for work items moving across the group board."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class WorkItemStatus(Enum):
    TODO = "TO DO"
    IN_PROGRESS = "IN PROGRESS"
    WAIT_FOR_REVIEW = "WAIT FOR REVIEW"
    DONE = "DONE"


class WorkItemType(Enum):
    EPIC = "Epic"
    STORY = "Story"
    TASK = "Task"
    SUBTASK = "Subtask"


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as sent by the backend ('Z' suffix allowed)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _nested_id(data: dict, flat_key: str, nested_key: str) -> int | None:
    value = data.get(flat_key)
    if value is not None:
        return int(value)
    nested = data.get(nested_key)
    if isinstance(nested, dict) and nested.get("id") is not None:
        return int(nested["id"])
    return None


@dataclass(frozen=True)
class WorkItem:
    id: int
    type: WorkItemType
    status: WorkItemStatus
    summary: str = ""
    key: str | None = None
    description: str | None = None
    assignee_id: int | None = None
    reporter_id: int | None = None
    sprint_id: int | None = None
    parent_item_id: int | None = None
    parent_lecturer_work_item_id: int | None = None
    story_points: float | None = None
    rating: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_lecturer_assigned(self) -> bool:
        return self.parent_lecturer_work_item_id is not None

    @classmethod
    def from_api(cls, data: dict) -> WorkItem:
        """Build a WorkItem from the backend's camelCase JSON object."""
        return cls(
            id=int(data["id"]),
            type=WorkItemType(data["type"]),
            status=WorkItemStatus(data["status"]),
            summary=data.get("summary") or "",
            key=data.get("key"),
            description=data.get("description"),
            assignee_id=_nested_id(data, "assigneeId", "assignee"),
            reporter_id=_nested_id(data, "reporterId", "reporter"),
            sprint_id=_nested_id(data, "sprintId", "sprint"),
            parent_item_id=data.get("parentItemId"),
            parent_lecturer_work_item_id=data.get("parentLecturerWorkItemId"),
            story_points=data.get("storyPoints"),
            rating=data.get("rating"),
            start_date=parse_timestamp(data.get("startDate")),
            end_date=parse_timestamp(data.get("endDate")),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class Actor:
    """The user operating the board and the capabilities the group grants them."""

    user_id: int
    is_group_leader: bool = False


@dataclass(frozen=True)
class WorkItemPage:
    total: int
    items: tuple[WorkItem, ...] = field(default_factory=tuple)
