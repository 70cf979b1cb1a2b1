from .models import Actor, WorkItem, WorkItemPage, WorkItemStatus, WorkItemType
from .interface import WorkItemBackend

__all__ = [
    "Actor",
    "WorkItem",
    "WorkItemPage",
    "WorkItemStatus",
    "WorkItemType",
    "WorkItemBackend",
]
