"""Exceptions raised by the approval engine.

Routers translate these into HTTP responses; services never return error
sentinels.
"""


class ApprovalError(Exception):
    """Base class for approval engine failures."""


class ApprovalValidationError(ApprovalError):
    """Raised when input is missing or malformed."""


class ApprovalNotFoundError(ApprovalError):
    """Raised when an approval request, trigger or provisioning request does not exist."""


class InvalidStateError(ApprovalError):
    """Raised when a transition is attempted from a state that does not allow it."""


class ApprovalPermissionError(ApprovalError):
    """Raised when the acting role may not perform the decision."""


class PolicyCreationError(ApprovalError):
    """Raised when approval was required but the request could not be persisted."""


__all__ = [
    "ApprovalError",
    "ApprovalNotFoundError",
    "ApprovalPermissionError",
    "ApprovalValidationError",
    "InvalidStateError",
    "PolicyCreationError",
]
