"""
Application error taxonomy.

Services raise these instead of HTTPException so they stay usable outside a
request; the handler registered in app.main maps them to a JSON response.
"""
from fastapi import status


class AppError(Exception):
    """Base error carrying a human readable message and an HTTP status."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def __repr__(self) -> str:
        return f"<{type(self).__name__}(status={self.status_code}, message={self.message!r})>"


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class LockedError(AppError):
    status_code = status.HTTP_423_LOCKED


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
