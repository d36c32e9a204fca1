"""Shared BDD fixtures for the Payments domain."""

import pytest
from shared.errors import DomainError, DomainValidationError


@pytest.fixture()
def error():
    """Container for the domain error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run a When-step action, capturing a domain error instead of raising."""

    def _run(action):
        try:
            action()
        except (DomainError, DomainValidationError) as exc:
            error["exc"] = exc

    return _run
