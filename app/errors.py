"""
Order workflow errors. Every failure carries a stable code and a category so
callers can pick the recovery path: fix input, stop, refetch, or retry.
"""
from enum import Enum


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    STATE_CONFLICT = "state_conflict"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"


HTTP_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.STATE_CONFLICT: 409,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.TRANSPORT: 503,
}


class OrderWorkflowError(Exception):
    code = "OrderWorkflowError"
    category = ErrorCategory.VALIDATION
    default_message = "Order workflow error"

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY[self.category]

    def to_dict(self) -> dict:
        return {"error": self.code, "category": self.category.value, "detail": self.message}


# Validation: fix the input and resubmit.
class ValidationFailed(OrderWorkflowError):
    code = "ValidationFailed"
    category = ErrorCategory.VALIDATION
    default_message = "Request is invalid"


class ReasonRequired(ValidationFailed):
    code = "ReasonRequired"
    default_message = "A non-empty reason is required"


class InvalidStatus(ValidationFailed):
    code = "InvalidStatus"
    default_message = "Unknown order status"


class InvalidRequest(ValidationFailed):
    """Request rejected by schema validation before reaching the workflow."""

    code = "InvalidRequest"


# Authorization: blocking, no retry.
class Forbidden(OrderWorkflowError):
    code = "Forbidden"
    category = ErrorCategory.AUTHORIZATION
    default_message = "Not allowed to perform this action"


class OrderNotFound(OrderWorkflowError):
    code = "OrderNotFound"
    category = ErrorCategory.NOT_FOUND
    default_message = "Order not found"


# State conflict: the caller's copy of the order is stale. Refetch, don't retry.
class StateConflict(OrderWorkflowError):
    code = "StateConflict"
    category = ErrorCategory.STATE_CONFLICT
    default_message = "Order is not in a state that allows this action"


class NotPending(StateConflict):
    code = "NotPending"
    default_message = "Order is not awaiting approval"


class NotCancellable(StateConflict):
    code = "NotCancellable"
    default_message = "Order can no longer be cancelled"


class InvalidTransition(StateConflict):
    code = "InvalidTransition"
    default_message = "Status transition is not allowed"


class AlreadyTerminal(StateConflict):
    code = "AlreadyTerminal"
    default_message = "Order is already in a final status"


class Conflict(StateConflict):
    """Persisted status changed between read and write."""

    code = "Conflict"
    default_message = "Order was modified concurrently"


class TransportFailure(OrderWorkflowError):
    """Network failure or backend error. Safe to retry manually."""

    code = "TransportFailure"
    category = ErrorCategory.TRANSPORT
    default_message = "Order service is unavailable"


def _all_subclasses(cls: type) -> list[type]:
    out = []
    for sub in cls.__subclasses__():
        out.append(sub)
        out.extend(_all_subclasses(sub))
    return out


ERRORS_BY_CODE: dict[str, type[OrderWorkflowError]] = {
    cls.code: cls for cls in [OrderWorkflowError, *_all_subclasses(OrderWorkflowError)]
}
