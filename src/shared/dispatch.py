"""Orchestration boundary: run a command and fold the result into an Outcome.

``current_domain.process()`` runs the handler inside a Protean unit of work,
so any exception rolls back every repository write (and every buffered event)
made by that handler. This module is the single place where those exceptions
become typed errors:

    DomainError / DomainValidationError -> their own type and code
    ValidationError                      -> Validation
    ObjectNotFoundError                  -> NotFound
    ExpectedVersionError                 -> Conflict (optimistic concurrency)
    anything else                        -> Failure, message preserved

Commands that target the same aggregate can be serialized in-process with
``serialize_on``: same-key commands run one at a time around the whole unit
of work, so a read-check-write sequence cannot interleave.
"""

import threading
from contextlib import contextmanager

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from shared.errors import DomainError, DomainValidationError
from shared.outcomes import ErrorType, Outcome

logger = structlog.get_logger(__name__)


class _KeyLock:
    """A per-key lock counting the threads that hold or wait on it."""

    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


_registry_lock = threading.Lock()
# Only keys with a current holder or waiter have an entry.
_key_locks: dict[str, _KeyLock] = {}


@contextmanager
def _serialized(key: str):
    with _registry_lock:
        entry = _key_locks.get(key)
        if entry is None:
            entry = _key_locks[key] = _KeyLock()
        entry.holders += 1
    try:
        with entry.lock:
            yield
    finally:
        with _registry_lock:
            entry.holders -= 1
            if entry.holders == 0:
                del _key_locks[key]


def _flatten_messages(messages) -> str:
    if isinstance(messages, dict):
        parts = []
        for field_name, errors in messages.items():
            errors = errors if isinstance(errors, list) else [errors]
            parts.append(f"{field_name}: {', '.join(str(e) for e in errors)}")
        return "; ".join(parts)
    return str(messages)


def _command_name(command) -> str:
    return type(command).__name__


def to_outcome(command, exc: Exception) -> Outcome:
    """Translate an exception raised by ``command`` into a failed Outcome."""
    name = _command_name(command)

    if isinstance(exc, DomainError):
        return Outcome.fail(exc.error_type, exc.code, exc.message, exc.details)

    if isinstance(exc, DomainValidationError):
        return Outcome.fail(ErrorType.VALIDATION, exc.code, exc.message, {"field": exc.field})

    if isinstance(exc, ValidationError):
        return Outcome.fail(
            ErrorType.VALIDATION,
            f"{name}.Invalid",
            _flatten_messages(exc.messages),
            {"errors": exc.messages},
        )

    if isinstance(exc, ObjectNotFoundError):
        return Outcome.fail(ErrorType.NOT_FOUND, f"{name}.NotFound", str(exc))

    if isinstance(exc, ExpectedVersionError):
        logger.warning("Concurrent modification detected", command=name, error=str(exc))
        return Outcome.fail(ErrorType.CONFLICT, "Concurrency.Conflict", str(exc))

    logger.exception("Unexpected failure while processing command", command=name)
    return Outcome.fail(ErrorType.FAILURE, f"{name}.Failed", str(exc))


def dispatch(command, serialize_on: str | None = None) -> Outcome:
    """Process ``command`` synchronously and return an Outcome.

    Args:
        command: A Protean command instance registered with the active domain.
        serialize_on: Optional key (usually an aggregate id). Commands sharing
            the same key never run concurrently in this process.
    """
    if serialize_on is None:
        return _run(command)

    with _serialized(f"{current_domain.name}:{serialize_on}"):
        return _run(command)


def _run(command) -> Outcome:
    try:
        result = current_domain.process(command, asynchronous=False)
    except Exception as exc:  # noqa: BLE001
        return to_outcome(command, exc)
    return Outcome.ok(result)
