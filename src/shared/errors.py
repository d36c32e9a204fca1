"""Typed domain errors shared by the Sales and Payments contexts.

Aggregates raise these for expected business conditions. Each error carries a
stable ``code`` (``"Order.AlreadyRefunded"``) so callers can branch on it, and
an ``error_type`` that the dispatch boundary turns into an Outcome category.

``DomainValidationError`` extends Protean's ``ValidationError`` so code that
already catches ``ValidationError`` keeps working.
"""

from protean.exceptions import ValidationError

from shared.outcomes import ErrorType


class DomainError(Exception):
    """Base class for expected, typed business failures."""

    error_type = ErrorType.FAILURE

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(DomainError):
    error_type = ErrorType.NOT_FOUND


class ConflictError(DomainError):
    error_type = ErrorType.CONFLICT


class InvalidTransitionError(ConflictError):
    """A state-machine transition that is not allowed from the current state."""

    def __init__(self, code: str, current: str, target: str, message: str | None = None) -> None:
        super().__init__(
            code,
            message or f"Cannot transition from {current} to {target}",
            {"current": current, "target": target},
        )


class UnauthorizedError(DomainError):
    error_type = ErrorType.UNAUTHORIZED


class ForbiddenError(DomainError):
    error_type = ErrorType.FORBIDDEN


class FailureError(DomainError):
    error_type = ErrorType.FAILURE


class DomainValidationError(ValidationError):
    """A Protean ValidationError that also carries a stable error code."""

    error_type = ErrorType.VALIDATION

    def __init__(self, code: str, field: str, message: str) -> None:
        super().__init__({field: [message]})
        self.code = code
        self.field = field
        self.message = message
