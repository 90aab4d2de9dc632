"""Error codes and error response models for the HTTP surface."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

SYNTHESIS_FAILED_MESSAGE = (
    "Failed to generate a response. Check the assistant configuration and try again."
)


class ErrorCode(str, Enum):
    """Machine-readable error codes from the API contract."""

    INVALID_REQUEST = "invalid_request"
    INPUT_TOO_LONG = "input_too_long"
    UNAUTHORIZED = "unauthorized"
    SYNTHESIS_FAILED = "synthesis_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ErrorResponse(BaseModel):
    """Structured error response body."""

    error: ErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")


class SynthesisError(RuntimeError):
    """Raised when the completion service cannot produce an answer."""

    def __init__(self, message: str = SYNTHESIS_FAILED_MESSAGE) -> None:
        super().__init__(message)
        self.user_message = message
