from .board import BoardFeed
from .debounce import AsyncioTimerScheduler, SearchDebouncer, TimerScheduler
from .filters import NO_SPRINT, UNASSIGNED, FilterDraft, FilterState
from .paginated import FeedState, PaginatedFeed

__all__ = [
    "AsyncioTimerScheduler",
    "BoardFeed",
    "FeedState",
    "FilterDraft",
    "FilterState",
    "NO_SPRINT",
    "PaginatedFeed",
    "SearchDebouncer",
    "TimerScheduler",
    "UNASSIGNED",
]
