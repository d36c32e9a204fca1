"""Typed outcomes returned from the orchestration boundary.

Handlers return plain values and raise typed errors; ``shared.dispatch``
folds both into an ``Outcome`` so API and integration callers can branch on
``ErrorType`` instead of catching exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorType(Enum):
    NOT_FOUND = "NotFound"
    VALIDATION = "Validation"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    FAILURE = "Failure"


# HTTP status used by the API layers for each error category
HTTP_STATUS = {
    ErrorType.NOT_FOUND: 404,
    ErrorType.VALIDATION: 422,
    ErrorType.CONFLICT: 409,
    ErrorType.UNAUTHORIZED: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.FAILURE: 500,
}


@dataclass(frozen=True)
class Error:
    type: ErrorType
    code: str
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


@dataclass(frozen=True)
class Outcome:
    """Either a success value or a typed error, never both."""

    value: Any = None
    error: Error | None = None

    @classmethod
    def ok(cls, value: Any = None) -> "Outcome":
        return cls(value=value)

    @classmethod
    def fail(cls, type_: ErrorType, code: str, message: str, details: dict | None = None) -> "Outcome":
        return cls(error=Error(type=type_, code=code, message=message, details=details or {}))

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None
