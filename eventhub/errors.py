"""Typed failures raised by the ticketing workflows.

Every failure carries a stable machine-readable ``kind`` and a message that is
safe to show to the caller. ``main.py`` renders them as
``{"error": kind, "detail": message}`` with the matching HTTP status.
"""


class EventHubError(Exception):
    """Base error with a stable kind, an HTTP status and a user-safe message."""

    kind = "InternalError"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class NotFoundError(EventHubError):
    """Event or ticket absent, or not owned by the caller."""

    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class UnauthorizedError(EventHubError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(EventHubError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Forbidden"


class InvalidStateError(EventHubError):
    kind = "InvalidState"
    status_code = 400
    default_message = "Operation not allowed in the current state"


class InsufficientInventoryError(EventHubError):
    kind = "InsufficientInventory"
    status_code = 409

    def __init__(self, available: int):
        self.available = available
        super().__init__(f"Only {available} tickets available")


class DuplicatePurchaseError(EventHubError):
    kind = "DuplicatePurchase"
    status_code = 409
    default_message = "You already have tickets for this event"


class PriceMismatchError(EventHubError):
    kind = "PriceMismatch"
    status_code = 400
    default_message = "Invalid total amount"


class AlreadyCompletedError(EventHubError):
    kind = "AlreadyCompleted"
    status_code = 409
    default_message = "Payment already completed"


class ValidationError(EventHubError):
    """Input shape is wrong in a way the request schema cannot express."""

    kind = "ValidationError"
    status_code = 422
    default_message = "Invalid input data"


class ConflictError(EventHubError):
    kind = "Conflict"
    status_code = 409
    default_message = "Resource already exists"


class InternalError(EventHubError):
    pass
