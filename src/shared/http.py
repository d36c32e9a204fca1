"""HTTP mapping for Outcomes, shared by the FastAPI routers."""

from fastapi import HTTPException
from protean.exceptions import ValidationError

from shared.outcomes import HTTP_STATUS, Outcome


def unwrap(outcome: Outcome):
    """Return the success value, or raise an HTTPException for the typed error."""
    if outcome.is_success:
        return outcome.value
    raise HTTPException(status_code=HTTP_STATUS[outcome.error.type], detail=outcome.error.to_dict())


def build(command_cls, **kwargs):
    """Instantiate a command, reporting malformed input as a 422."""
    try:
        return command_cls(**kwargs)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": f"{command_cls.__name__}.Invalid", "message": str(exc.messages), "details": exc.messages},
        ) from None
