"""Mapping of pipeline errors to HTTP responses."""

from fastapi import HTTPException

from reelsmith.core.exceptions import (
    ClipGenerationError,
    EntityNotFound,
    PreconditionViolation,
    ReelsmithError,
    ScriptGenerationFailed,
    StorageFailure,
    VoiceServiceError,
)

# Failures of an upstream service rather than of this process
_UPSTREAM_ERRORS = (ClipGenerationError, VoiceServiceError, StorageFailure, ScriptGenerationFailed)


def status_code_for(error: Exception) -> int:
    if isinstance(error, PreconditionViolation):
        return 400
    if isinstance(error, EntityNotFound):
        return 404
    if isinstance(error, _UPSTREAM_ERRORS):
        return 502
    return 500


def to_http_exception(error: Exception) -> HTTPException:
    """Convert an exception into an HTTPException carrying its message."""
    if isinstance(error, ReelsmithError):
        return HTTPException(status_code=status_code_for(error), detail=error.message)
    return HTTPException(status_code=500, detail=f"Internal error: {error}")
