"""
revision_planner/errors.py

Error kinds raised by the planner core and stores. The HTTP layer turns any
PlannerError into the uniform envelope:

{
    "success": false,
    "message": "Human-readable description"
}
"""

from fastapi import status


class PlannerError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class PreconditionFailed(PlannerError):
    """No active subscription or free trial."""

    status_code = status.HTTP_400_BAD_REQUEST


class PlannerNotFound(PlannerError):
    status_code = status.HTTP_404_NOT_FOUND


class RetrievalError(PlannerError):
    """Question bank or document store unavailable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ValidationError(PlannerError):
    """Malformed identifiers or records."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PlannerExists(PlannerError):
    """Another build already stored a planner for this student and week."""

    status_code = status.HTTP_409_CONFLICT
