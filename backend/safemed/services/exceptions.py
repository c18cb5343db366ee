"""Caller-facing outcomes of the access workflow.

Each error maps to a distinct HTTP response so clients can tell
"already requested" apart from "already decided".
"""

from fastapi import status


class AccessError(Exception):
    """Base class for expected access-workflow failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "access_error"
    default_message: str = "Access request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AccessValidationError(AccessError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_message = "Invalid access request"


class NotFoundError(AccessError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class ConflictError(AccessError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Access request already pending"


class InvalidStateError(AccessError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"
    default_message = "Access request already responded"
