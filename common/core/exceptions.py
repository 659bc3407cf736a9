from typing import Optional


class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class RemoteServiceError(AppException):
    """A call to an external provider was rejected or failed in transport."""

    def __init__(
        self, message: str, service: str, status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ConcurrentModificationError(AppException):
    """Another operation holds the lock for this resource."""

    pass
