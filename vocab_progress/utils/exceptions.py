"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from loguru import logger


class ProgressEngineException(Exception):
    """Base exception for the progress engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ProgressEngineException):
    """Malformed input rejected before any state mutation."""
    pass


class TransientStorageError(ProgressEngineException):
    """Network or timeout failure while talking to the remote store."""
    pass


class OfflineUnavailable(ProgressEngineException):
    """The remote store is unreachable; writes must be queued locally."""
    pass


class SessionError(ProgressEngineException):
    """Learning session related errors."""
    pass


def handle_validation_error(error: ValidationError) -> HTTPException:
    """Handle validation errors."""
    logger.warning(f"Validation error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_session_error(error: SessionError) -> HTTPException:
    """Handle learning session errors."""
    logger.error(f"Session error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error.message
    )


def handle_storage_error(error: ProgressEngineException) -> HTTPException:
    """Handle storage failures that could not be absorbed by the offline queue."""
    logger.error(f"Storage error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Progress store is temporarily unavailable. Please try again later."
    )
