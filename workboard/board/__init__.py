from .approval import ApprovalGate, GateState
from .drag import DragController, DragOutcome, DragSource
from .model import BoardModel, BoardSummary, LiveBoard
from .store import WorkItemStore

__all__ = [
    "ApprovalGate",
    "BoardModel",
    "BoardSummary",
    "DragController",
    "DragOutcome",
    "DragSource",
    "GateState",
    "LiveBoard",
    "WorkItemStore",
]
