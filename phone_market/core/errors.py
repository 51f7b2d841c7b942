class AppError(Exception):
    """Base for errors that map onto an HTTP response as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class ExternalDependencyFailure(AppError):
    status_code = 502


class Internal(AppError):
    status_code = 500
