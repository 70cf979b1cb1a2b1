"""Work item status transitions defined as data."""

from .exceptions import InvalidTransitionError
from .models import WorkItemStatus, WorkItemType

COLUMN_ORDER: tuple[WorkItemStatus, ...] = (
    WorkItemStatus.TODO,
    WorkItemStatus.IN_PROGRESS,
    WorkItemStatus.WAIT_FOR_REVIEW,
    WorkItemStatus.DONE,
)

TYPE_ORDER: tuple[WorkItemType, ...] = (
    WorkItemType.EPIC,
    WorkItemType.STORY,
    WorkItemType.TASK,
    WorkItemType.SUBTASK,
)

# Entering these statuses needs a reviewer's rating instead of a plain update.
GATED_STATUSES: frozenset[WorkItemStatus] = frozenset({WorkItemStatus.DONE})


def coerce_status(value: WorkItemStatus | str) -> WorkItemStatus:
    """Accept a status enum, its wire value ("IN PROGRESS") or its name ("IN_PROGRESS")."""
    if isinstance(value, WorkItemStatus):
        return value
    for candidate in (value, value.upper()):
        try:
            return WorkItemStatus(candidate)
        except ValueError:
            continue
    try:
        return WorkItemStatus[value.upper().replace(" ", "_").replace("-", "_")]
    except KeyError:
        raise ValueError(f"Unknown work item status: {value}") from None


def requires_approval(to_status: WorkItemStatus) -> bool:
    return to_status in GATED_STATUSES


def validate_transition(
    item_id: int,
    from_status: WorkItemStatus,
    to_status: WorkItemStatus,
) -> None:
    """Raise InvalidTransitionError unless a plain status update may perform the move."""
    if from_status is to_status or requires_approval(to_status):
        raise InvalidTransitionError(item_id, from_status, to_status)
