"""
Error taxonomy shared by services and mapped to HTTP responses in api/errors.py.
"""


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    error = "Not Found"


class ConflictError(AppError):
    status_code = 409
    error = "Conflict"


class InvalidStateError(AppError):
    status_code = 400
    error = "Bad Request"


class ForbiddenError(AppError):
    status_code = 403
    error = "Forbidden"


class UnauthorizedError(AppError):
    status_code = 401
    error = "Unauthorized"


class ValidationError(AppError):
    status_code = 400
    error = "Bad Request"
