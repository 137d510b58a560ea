"""Errors raised by the lead workflow services.

Controllers translate them into HTTP responses; anything else coming out of
the record store propagates unmodified.
"""


class LeadWorkflowError(Exception):
    """Base class for workflow errors."""


class LeadValidationError(LeadWorkflowError):
    """Raised when a draft is rejected before any write happens."""


class NoEligibleAssigneeError(LeadValidationError):
    """Raised when a lead needs an assignee but no eligible staff member is online."""


class RecordNotFoundError(LeadWorkflowError):
    """Raised when a referenced lead or staff member does not exist."""


class PermissionDeniedError(LeadWorkflowError):
    """Raised when the acting identity's role does not allow the operation."""
