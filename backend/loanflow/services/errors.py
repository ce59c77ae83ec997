"""Domain exceptions raised by the loanflow services.

The API layer maps each of these to an HTTP status in ``loanflow.main``;
nothing below knows about HTTP.
"""

from typing import Optional


class LoanflowError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str, errors: Optional[dict[str, list[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class ValidationError(LoanflowError):
    """Input failed a business rule."""


class NotFoundError(LoanflowError):
    """Entity, or pending correction, not found."""


class ConflictError(LoanflowError):
    """Request is well-formed but the current records cannot take it."""


class FieldNotVerifiable(LoanflowError):
    """Field name is not part of the verifiable-field catalog."""

    def __init__(self, field_name: object):
        super().__init__(f"Campo no verificable: {field_name}")
        self.field_name = field_name


class IllegalTransitionError(LoanflowError):
    """Status transition not permitted from the current state."""

    def __init__(self, from_status, to_status, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot transition from {_name(from_status)} to {_name(to_status)}"
        )
        self.from_status = from_status
        self.to_status = to_status


class IncompleteDataError(LoanflowError):
    """Submission gate failed; ``errors`` maps each failing requirement to its messages."""

    def __init__(self, errors: dict[str, list[str]]):
        super().__init__("Application is incomplete", errors)


def _name(status) -> str:
    return getattr(status, "value", str(status))
