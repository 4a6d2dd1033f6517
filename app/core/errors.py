"""Domain errors raised by the services and rendered by the API layer."""

from typing import List, Optional

from fastapi import status


class FinanceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(FinanceError):
    """Malformed or out-of-range input. Nothing is persisted."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(FinanceError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(FinanceError):
    """The entity exists but belongs to another user."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(FinanceError):
    status_code = status.HTTP_409_CONFLICT
