"""Translate engine errors into HTTP responses."""
from fastapi import HTTPException

from tournament_engine.errors import (
    AmbiguousResultError,
    EngineError,
    InconsistentBracketStateError,
    InvalidConfigurationError,
)


def to_http_exception(exc: EngineError) -> HTTPException:
    if isinstance(exc, InconsistentBracketStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidConfigurationError, AmbiguousResultError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
