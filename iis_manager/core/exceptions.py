"""Custom exception classes for the IIS manager.

Every error carries the HTTP status the API boundary answers with, so a single
exception handler in ``main`` can shape all of them.
"""

from fastapi import status


class IISManagerError(Exception):
    """Base exception for the IIS manager."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(IISManagerError):
    """Raised when a named site or application pool does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(IISManagerError):
    """Raised when the same command is already running against the same target."""
    status_code = status.HTTP_409_CONFLICT


class GatewayError(IISManagerError):
    """Raised when the management gateway faults."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ExecutionError(IISManagerError):
    """Raised when a restart/recycle command fails inside the gateway."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PersistenceError(IISManagerError):
    """Raised when the audit store cannot be written or read.

    ``action_completed`` is set when the command itself already ran on the
    server and only its audit record was lost.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Audit store unavailable", action_completed: bool = False):
        self.action_completed = action_completed
        super().__init__(message)
