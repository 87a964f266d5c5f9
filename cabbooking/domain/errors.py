"""
Error taxonomy for the booking lifecycle.

Every failure the engine reports carries an explicit ``ErrorKind`` so the
API layer can map it to a response without inspecting messages.
"""

from __future__ import annotations

import enum
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    UPSTREAM = "UPSTREAM"


class LifecycleError(Exception):
    """Base class for every error raised by the lifecycle core."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(LifecycleError):
    """A required field is missing or malformed; nothing was written."""

    kind = ErrorKind.VALIDATION


class NotFoundError(LifecycleError):
    kind = ErrorKind.NOT_FOUND


class InvalidStateError(LifecycleError):
    """The operation is not valid in the booking's current status."""

    kind = ErrorKind.INVALID_STATE


class InvalidTransitionError(LifecycleError):
    """The requested from -> to pair is not in the transition table."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Cannot transition from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class ConflictError(LifecycleError):
    kind = ErrorKind.CONFLICT


class PartialSuccess(LifecycleError):
    """
    Data was persisted but a required downstream side effect failed.

    ``payload`` holds whatever was saved so the caller can still show it.
    """

    kind = ErrorKind.PARTIAL_SUCCESS

    def __init__(self, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.payload = payload


class UpstreamError(LifecycleError):
    """Payment gateway or notification provider unreachable / misconfigured."""

    kind = ErrorKind.UPSTREAM
