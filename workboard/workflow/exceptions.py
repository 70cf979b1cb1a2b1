"""Work item exception types."""


class WorkboardError(Exception):
    """Base class for every error the board engine reports."""


class ValidationError(WorkboardError):
    """Raised locally when input is rejected before reaching the network."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class AuthorizationError(WorkboardError):
    """Raised locally when the acting user lacks a required capability."""

    def __init__(self, action: str, message: str):
        self.action = action
        self.message = message
        super().__init__(message)


class ApprovalPendingError(WorkboardError):
    """Raised when an approval is requested while another one is still open."""

    def __init__(self, pending_item_id: int):
        self.pending_item_id = pending_item_id
        super().__init__(
            f"Work item {pending_item_id} is still awaiting approval"
        )


class InvalidTransitionError(WorkboardError):
    """Raised when a status transition is not allowed client-side."""

    def __init__(self, item_id: int, from_status, to_status):
        self.item_id = item_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition for work item {item_id}: "
            f"{from_status.value} → {to_status.value}"
        )


class MutationFailedError(WorkboardError):
    """A request reached for the backend and did not succeed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConflictOrServerError(MutationFailedError):
    """The backend answered with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class NetworkError(MutationFailedError):
    """The backend could not be reached."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        message = "Network error: could not reach the server"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
